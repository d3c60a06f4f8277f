"""
SQLAlchemy Core storage for items, runs and sentiment metrics.

Items are keyed by a hash of their normalised URL, so inserting the same link
twice is a no-op. Nothing is ever deleted; later stages mutate columns in place.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import (
    Column,
    case,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    literal,
    or_,
    select,
    text,
    update,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from pulse.dedupe import hash_url
from pulse.errors import RunInProgressError
from pulse.models import (
    Citation,
    Engagement,
    FeedFilter,
    Item,
    Metric,
    Run,
    RunStatus,
    Sentiment,
    SourceType,
    Subject,
    Trend,
)
from pulse.text import classify_source_type, classify_subject, truncate
from pulse.timeutil import to_iso, utc_now
from utils.keywords import BRAND_ACCOUNTS, HEAD_TO_HEAD_PHRASES, USE_CASE_EXCLUDED_ACCOUNTS, USE_CASE_PHRASES

logger = logging.getLogger(__name__)

SNIPPET_MAX_CHARS = 500
POLARIZED_THRESHOLD = 50
TREND_THRESHOLD = 5

metadata = MetaData()

items_table = Table(
    "items",
    metadata,
    Column("id", String, primary_key=True),
    Column("url", String, nullable=False, unique=True),
    Column("title", Text, nullable=True),
    Column("snippet", Text, nullable=True),
    Column("source_type", String, nullable=False),
    Column("subject", String, nullable=False),
    Column("sentiment", String, nullable=False, server_default="neutral"),
    Column("sentiment_score", Integer, nullable=True),
    Column("published_at", String, nullable=True),
    Column("discovered_at", String, nullable=False),
    Column("run_id", String, nullable=False),
    Column("author", String, nullable=True),
    Column("importance_score", Integer, nullable=False, server_default="0"),
    Column("take", Text, nullable=True),
    Column("image_url", String, nullable=True),
    Column("likes", Integer, nullable=True),
    Column("reshares", Integer, nullable=True),
    Column("replies", Integer, nullable=True),
    Column("views", Integer, nullable=True),
    Column("quotes", Integer, nullable=True),
    Column("bookmarks", Integer, nullable=True),
    Column("engagement_fetched_at", String, nullable=True),
    Index("idx_items_subject", "subject"),
    Index("idx_items_sentiment", "sentiment"),
    Index("idx_items_discovered", "discovered_at"),
    Index("idx_items_run", "run_id"),
)

runs_table = Table(
    "runs",
    metadata,
    Column("id", String, primary_key=True),
    Column("started_at", String, nullable=False),
    Column("completed_at", String, nullable=True),
    Column("items_found", Integer, server_default="0"),
    Column("items_new", Integer, server_default="0"),
    Column("summary", Text, nullable=True),
    Column("claude_score", Integer, nullable=True),
    Column("openai_score", Integer, nullable=True),
    Column("status", String, nullable=False, server_default="running"),
    Column("error", Text, nullable=True),
    Index("idx_runs_status", "status"),
    # At most one running row, enforced by the database for concurrent claims.
    Index(
        "uq_runs_running",
        "status",
        unique=True,
        sqlite_where=text("status = 'running'"),
        postgresql_where=text("status = 'running'"),
    ),
)

metrics_table = Table(
    "metrics",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("subject", String, nullable=False),
    Column("computed_at", String, nullable=False),
    Column("total_items", Integer),
    Column("positive_count", Integer),
    Column("negative_count", Integer),
    Column("neutral_count", Integer),
    Column("sentiment_score", Integer),
    Column("trend", String),
    Index("idx_metrics_subject", "subject"),
)


@dataclass
class PersistResult:
    new: int = 0
    existing: int = 0
    new_ids: List[str] = field(default_factory=list)


def _make_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, future=True, pool_pre_ping=True)
    if url.database in (None, "", ":memory:"):
        return create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, future=True, connect_args={"check_same_thread": False})


def trend_for(diff: float) -> Trend:
    if diff > TREND_THRESHOLD:
        return Trend.UP
    if diff < -TREND_THRESHOLD:
        return Trend.DOWN
    return Trend.STABLE


def _row_to_item(row: Any) -> Item:
    data = dict(row._mapping)
    return Item(
        id=data["id"],
        url=data["url"],
        source_type=SourceType(data["source_type"]),
        subject=Subject(data["subject"]),
        discovered_at=data["discovered_at"],
        run_id=data["run_id"],
        title=data["title"],
        snippet=data["snippet"],
        sentiment=Sentiment(data["sentiment"] or Sentiment.NEUTRAL.value),
        sentiment_score=data["sentiment_score"],
        published_at=data["published_at"],
        author=data["author"],
        importance_score=data["importance_score"] or 0,
        take=data["take"],
        image_url=data["image_url"],
        likes=data["likes"],
        reshares=data["reshares"],
        replies=data["replies"],
        views=data["views"],
        quotes=data["quotes"],
        bookmarks=data["bookmarks"],
        engagement_fetched_at=data["engagement_fetched_at"],
    )


def _row_to_run(row: Any) -> Run:
    data = dict(row._mapping)
    data["status"] = RunStatus(data["status"])
    return Run(**data)


def _row_to_metric(row: Any) -> Metric:
    data = dict(row._mapping)
    return Metric(
        id=data["id"],
        subject=Subject(data["subject"]),
        computed_at=data["computed_at"],
        total_items=data["total_items"] or 0,
        positive_count=data["positive_count"] or 0,
        negative_count=data["negative_count"] or 0,
        neutral_count=data["neutral_count"] or 0,
        sentiment_score=int(data["sentiment_score"] or 0),
        trend=Trend(data["trend"] or Trend.STABLE.value),
    )


def _has_snippet():
    c = items_table.c
    return (c.snippet.isnot(None)) & (c.snippet != "")


def _is_tweet():
    return items_table.c.source_type == SourceType.TWITTER.value


def _snippet_mentions(phrases: Sequence[str]):
    lowered = func.lower(items_table.c.snippet)
    return or_(*[lowered.like(f"%{phrase}%") for phrase in phrases])


def _author_not_in(handles: Sequence[str]):
    return func.lower(func.coalesce(items_table.c.author, "")).notin_([h.lower() for h in handles])


class Store:
    def __init__(self, database_url: str, run_stale_after_minutes: int = 15) -> None:
        self.engine = _make_engine(database_url)
        self.run_stale_after_minutes = run_stale_after_minutes
        metadata.create_all(self.engine)

    # ---- items -------------------------------------------------------------

    def _insert(self):
        dialect = self.engine.dialect.name
        if dialect == "sqlite":
            return sqlite.insert(items_table)
        if dialect == "postgresql":
            return postgresql.insert(items_table)
        return None

    def insert_item(self, values: Dict[str, Any]) -> bool:
        """Insert one item row. Returns True only when the row did not exist yet."""
        stmt = self._insert()
        with self.engine.begin() as conn:
            if stmt is None:
                try:
                    conn.execute(items_table.insert().values(**values))
                except IntegrityError:
                    return False
                return True
            result = conn.execute(stmt.values(**values).on_conflict_do_nothing())
            return result.rowcount == 1

    def persist_citations(
        self,
        citations: Iterable[Citation],
        run_id: str,
        now: Optional[datetime] = None,
    ) -> PersistResult:
        discovered_at = to_iso(now or utc_now())
        result = PersistResult()
        for citation in citations:
            item_id = hash_url(citation.url)
            inserted = self.insert_item(
                {
                    "id": item_id,
                    "url": citation.url,
                    "title": citation.title or None,
                    "snippet": truncate(citation.snippet, SNIPPET_MAX_CHARS) or None,
                    "source_type": classify_source_type(citation.url).value,
                    "subject": classify_subject(citation.title, citation.snippet).value,
                    "sentiment": Sentiment.NEUTRAL.value,
                    "published_at": citation.published_date,
                    "discovered_at": discovered_at,
                    "run_id": run_id,
                    "author": citation.author,
                    "image_url": citation.image,
                }
            )
            if inserted:
                result.new += 1
                result.new_ids.append(item_id)
            else:
                result.existing += 1
        logger.info("Persisted citations for run %s: %s new, %s existing", run_id, result.new, result.existing)
        return result

    def _select_items(self, stmt) -> List[Item]:
        with self.engine.connect() as conn:
            return [_row_to_item(row) for row in conn.execute(stmt)]

    def get_item(self, item_id: str) -> Optional[Item]:
        items = self._select_items(select(items_table).where(items_table.c.id == item_id))
        return items[0] if items else None

    def get_items(self, item_ids: Sequence[str]) -> List[Item]:
        if not item_ids:
            return []
        return self._select_items(select(items_table).where(items_table.c.id.in_(list(item_ids))))

    def items_for_run(self, run_id: str) -> List[Item]:
        c = items_table.c
        return self._select_items(select(items_table).where(c.run_id == run_id).order_by(c.discovered_at.desc()))

    def unscored_tweets(self, limit: int = 1000) -> List[Item]:
        c = items_table.c
        stmt = (
            select(items_table)
            .where(_is_tweet(), _has_snippet(), or_(c.importance_score.is_(None), c.importance_score == 0))
            .order_by(c.discovered_at.desc())
            .limit(limit)
        )
        return self._select_items(stmt)

    def tweets_without_takes(self, limit: int = 500, min_importance: int = 6, min_views: int = 5000) -> List[Item]:
        c = items_table.c
        stmt = (
            select(items_table)
            .where(
                _is_tweet(),
                _has_snippet(),
                c.importance_score >= min_importance,
                c.take.is_(None),
                or_(c.views.is_(None), c.views >= min_views),
            )
            .order_by(c.importance_score.desc())
            .limit(limit)
        )
        return self._select_items(stmt)

    def top_tweets_with_takes(self, limit: int = 200) -> List[Item]:
        c = items_table.c
        stmt = (
            select(items_table)
            .where(_is_tweet(), c.take.isnot(None), or_(c.views >= 5000, c.likes >= 200))
            .order_by(c.likes.desc().nulls_last(), c.importance_score.desc())
            .limit(limit)
        )
        return self._select_items(stmt)

    def recent_tweets(self, limit: int = 25) -> List[Item]:
        """Community tweets with real reach, brand accounts excluded."""
        c = items_table.c
        stmt = (
            select(items_table)
            .where(
                _is_tweet(),
                _has_snippet(),
                or_(c.views >= 5000, c.likes >= 200),
                _author_not_in(BRAND_ACCOUNTS),
            )
            .order_by(c.likes.desc().nulls_last(), c.importance_score.desc())
            .limit(limit)
        )
        return self._select_items(stmt)

    def tweets_for_summary(self, limit: int = 300) -> List[Item]:
        c = items_table.c
        stmt = (
            select(items_table)
            .where(_is_tweet(), _has_snippet())
            .order_by(c.importance_score.desc(), c.discovered_at.desc())
            .limit(limit)
        )
        return self._select_items(stmt)

    def tweets_without_engagement(self, limit: int = 500) -> List[Item]:
        c = items_table.c
        stmt = (
            select(items_table)
            .where(_is_tweet(), c.engagement_fetched_at.is_(None))
            .order_by(c.discovered_at.desc())
            .limit(limit)
        )
        return self._select_items(stmt)

    def head_to_head(self, limit: int = 12) -> List[Item]:
        c = items_table.c
        stmt = (
            select(items_table)
            .where(
                _is_tweet(),
                _has_snippet(),
                c.subject == Subject.BOTH.value,
                or_(c.likes >= 40, c.views >= 3000),
                _snippet_mentions(HEAD_TO_HEAD_PHRASES),
            )
            .order_by(c.likes.desc().nulls_last())
            .limit(limit)
        )
        return self._select_items(stmt)

    def use_cases(self, subject: Subject, limit: int = 8) -> List[Item]:
        c = items_table.c
        stmt = (
            select(items_table)
            .where(
                _is_tweet(),
                _has_snippet(),
                c.subject == subject.value,
                or_(c.likes >= 50, c.views >= 5000),
                _snippet_mentions(USE_CASE_PHRASES),
                _author_not_in(USE_CASE_EXCLUDED_ACCOUNTS),
            )
            .order_by(c.likes.desc().nulls_last())
            .limit(limit)
        )
        return self._select_items(stmt)

    @staticmethod
    def _feed_conditions(feed_filter: FeedFilter, since: Optional[str]) -> list:
        c = items_table.c
        conditions = []
        if feed_filter == FeedFilter.CLAUDE:
            conditions.append(c.subject.in_([Subject.CLAUDE.value, Subject.BOTH.value]))
        elif feed_filter == FeedFilter.OPENAI:
            conditions.append(c.subject.in_([Subject.OPENAI.value, Subject.BOTH.value]))
        elif feed_filter == FeedFilter.POLARIZED:
            conditions.append(or_(c.sentiment_score < -POLARIZED_THRESHOLD, c.sentiment_score > POLARIZED_THRESHOLD))
        if since:
            conditions.append(c.discovered_at > since)
        return conditions

    def feed(
        self,
        feed_filter: FeedFilter = FeedFilter.ALL,
        limit: int = 50,
        offset: int = 0,
        since: Optional[str] = None,
    ) -> List[Item]:
        c = items_table.c
        stmt = select(items_table).where(*self._feed_conditions(feed_filter, since))
        if feed_filter == FeedFilter.POLARIZED:
            stmt = stmt.order_by(func.abs(c.sentiment_score).desc())
        else:
            stmt = stmt.order_by(c.discovered_at.desc())
        return self._select_items(stmt.limit(limit).offset(offset))

    def feed_total(self, feed_filter: FeedFilter = FeedFilter.ALL, since: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(items_table).where(*self._feed_conditions(feed_filter, since))
        with self.engine.connect() as conn:
            return int(conn.execute(stmt).scalar() or 0)

    def total_items(self) -> int:
        return self.feed_total()

    def image_urls_for(self, urls: Sequence[str]) -> Dict[str, str]:
        if not urls:
            return {}
        c = items_table.c
        stmt = select(c.url, c.image_url).where(c.url.in_(list(urls)), c.image_url.isnot(None), c.image_url != "")
        with self.engine.connect() as conn:
            return {row.url: row.image_url for row in conn.execute(stmt)}

    # ---- item mutations ----------------------------------------------------

    def _update_item(self, item_id: str, **values: Any) -> None:
        with self.engine.begin() as conn:
            conn.execute(update(items_table).where(items_table.c.id == item_id).values(**values))

    def update_importance_score(self, item_id: str, score: int) -> None:
        self._update_item(item_id, importance_score=score)

    def update_take(self, item_id: str, take: str) -> None:
        self._update_item(item_id, take=take)

    def update_sentiment(self, item_id: str, sentiment: Sentiment, score: int) -> None:
        self._update_item(item_id, sentiment=sentiment.value, sentiment_score=score)

    def update_engagement(self, item_id: str, engagement: Engagement, now: Optional[datetime] = None) -> None:
        values = {
            "likes": engagement.likes,
            "reshares": engagement.reshares,
            "replies": engagement.replies,
            "views": engagement.views,
            "quotes": engagement.quotes,
            "bookmarks": engagement.bookmarks,
            "engagement_fetched_at": to_iso(now or utc_now()),
        }
        if engagement.image_url:
            values["image_url"] = engagement.image_url
        self._update_item(item_id, **values)

    def mark_engagement_checked(self, item_id: str, now: Optional[datetime] = None) -> None:
        self._update_item(item_id, engagement_fetched_at=to_iso(now or utc_now()))

    def update_image_url(self, item_id: str, image_url: str) -> None:
        self._update_item(item_id, image_url=image_url)

    def reset_scores(self) -> int:
        """Clear importance scores and takes on every tweet so the next run redoes them."""
        with self.engine.begin() as conn:
            result = conn.execute(update(items_table).where(_is_tweet()).values(importance_score=0, take=None))
            return result.rowcount or 0

    # ---- runs --------------------------------------------------------------

    def claim_run(self, run_id: str, now: Optional[datetime] = None) -> Run:
        """
        Start a run unless another one is active.

        Running rows older than the stale cutoff are marked failed first; the
        insert itself only happens when no running row remains. The partial
        unique index on running rows rejects the loser when two callers pass
        that check at once (PostgreSQL under READ COMMITTED).
        """
        now = now or utc_now()
        started_at = to_iso(now)
        cutoff = to_iso(now - timedelta(minutes=self.run_stale_after_minutes))
        c = runs_table.c
        with self.engine.begin() as conn:
            stale = conn.execute(
                update(runs_table)
                .where(c.status == RunStatus.RUNNING.value, c.started_at <= cutoff)
                .values(status=RunStatus.FAILED.value, completed_at=started_at, error="Abandoned: exceeded stale cutoff")
            )
            if stale.rowcount:
                logger.warning("Marked %s stale run(s) as failed", stale.rowcount)

        active = select(c.id).where(c.status == RunStatus.RUNNING.value).correlate(None)
        claim = runs_table.insert().from_select(
            ["id", "started_at", "status", "items_found", "items_new"],
            select(
                literal(run_id),
                literal(started_at),
                literal(RunStatus.RUNNING.value),
                literal(0),
                literal(0),
            ).where(~active.exists()),
        )
        try:
            with self.engine.begin() as conn:
                claimed = conn.execute(claim).rowcount == 1
        except IntegrityError:
            # Lost the race to a concurrent claim that committed first.
            claimed = False
        if not claimed:
            with self.engine.connect() as conn:
                holder = conn.execute(active.limit(1)).scalar()
            raise RunInProgressError(holder or "unknown")
        return Run(id=run_id, started_at=started_at)

    def complete_run(
        self,
        run_id: str,
        *,
        items_found: int,
        items_new: int,
        summary: str,
        claude_score: Optional[int] = None,
        openai_score: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                update(runs_table)
                .where(runs_table.c.id == run_id)
                .values(
                    completed_at=to_iso(now or utc_now()),
                    items_found=items_found,
                    items_new=items_new,
                    summary=summary,
                    claude_score=claude_score,
                    openai_score=openai_score,
                    status=RunStatus.COMPLETED.value,
                )
            )

    def fail_run(self, run_id: str, error: str, now: Optional[datetime] = None) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                update(runs_table)
                .where(runs_table.c.id == run_id)
                .values(completed_at=to_iso(now or utc_now()), status=RunStatus.FAILED.value, error=error)
            )

    def update_run_summary(self, run_id: str, summary: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(update(runs_table).where(runs_table.c.id == run_id).values(summary=summary))

    def _first_run(self, stmt) -> Optional[Run]:
        with self.engine.connect() as conn:
            row = conn.execute(stmt.limit(1)).first()
        return _row_to_run(row) if row else None

    def get_run(self, run_id: str) -> Optional[Run]:
        return self._first_run(select(runs_table).where(runs_table.c.id == run_id))

    def latest_completed_run(self) -> Optional[Run]:
        c = runs_table.c
        return self._first_run(
            select(runs_table).where(c.status == RunStatus.COMPLETED.value).order_by(c.completed_at.desc())
        )

    def latest_run(self) -> Optional[Run]:
        return self._first_run(select(runs_table).order_by(runs_table.c.started_at.desc()))

    # ---- metrics -----------------------------------------------------------

    def compute_and_store_metrics(self, subject: Subject, now: Optional[datetime] = None) -> Metric:
        c = items_table.c
        in_subject = c.subject.in_([subject.value, Subject.BOTH.value])

        def _count(sentiment: Sentiment):
            return func.coalesce(func.sum(case((c.sentiment == sentiment.value, 1), else_=0)), 0)

        stats_stmt = select(
            func.count().label("total"),
            _count(Sentiment.POSITIVE).label("positive"),
            _count(Sentiment.NEGATIVE).label("negative"),
            _count(Sentiment.NEUTRAL).label("neutral"),
            func.avg(c.sentiment_score).label("average"),
        ).where(in_subject)

        computed_at = to_iso(now or utc_now())
        with self.engine.begin() as conn:
            stats = conn.execute(stats_stmt).one()
            score = int(round(stats.average)) if stats.average is not None else 0
            previous = self._latest_metric_row(conn, subject)
            trend = trend_for(score - previous.sentiment_score) if previous is not None else Trend.STABLE
            result = conn.execute(
                metrics_table.insert().values(
                    subject=subject.value,
                    computed_at=computed_at,
                    total_items=int(stats.total or 0),
                    positive_count=int(stats.positive or 0),
                    negative_count=int(stats.negative or 0),
                    neutral_count=int(stats.neutral or 0),
                    sentiment_score=score,
                    trend=trend.value,
                )
            )
            metric_id = result.inserted_primary_key[0]
        return Metric(
            id=metric_id,
            subject=subject,
            computed_at=computed_at,
            total_items=int(stats.total or 0),
            positive_count=int(stats.positive or 0),
            negative_count=int(stats.negative or 0),
            neutral_count=int(stats.neutral or 0),
            sentiment_score=score,
            trend=trend,
        )

    @staticmethod
    def _latest_metric_row(conn, subject: Subject):
        c = metrics_table.c
        stmt = select(metrics_table).where(c.subject == subject.value).order_by(c.computed_at.desc(), c.id.desc()).limit(1)
        return conn.execute(stmt).first()

    def latest_metric(self, subject: Subject) -> Optional[Metric]:
        with self.engine.connect() as conn:
            row = self._latest_metric_row(conn, subject)
        return _row_to_metric(row) if row else None
