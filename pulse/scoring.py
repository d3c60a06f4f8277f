"""
Importance scoring for tweets: a harsh 1-10 curve from the completion model,
plus a fixed boost for notable authors.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from pulse.clients.base import CompletionService
from pulse.engagement import format_engagement_for_prompt
from pulse.errors import PulseError
from pulse.llm_output import ScoreEntry, in_range, validate_entries
from pulse.models import Item
from pulse.notable import author_boost, notable_handles_for_prompt
from pulse.text import format_handle

logger = logging.getLogger(__name__)

BATCH_SIZE = 30
SNIPPET_CHARS = 350
MIN_SCORE = 1
MAX_SCORE = 10
FALLBACK_SCORE = 5

SYSTEM_PROMPT = (
    "You are a ruthless content curator for a senior engineering audience. Most tweets are noise. "
    "You score 1-10 with a harsh curve: median should be around 4-5. Only genuinely substantive, "
    "specific, informative content gets 7+. Return valid JSON."
)

RUBRIC = """You are curating a feed for senior software engineers tracking the latest Claude (Anthropic) vs OpenAI model releases.

Score each tweet 1-10 on how VALUABLE it would be in that feed. Think: "Would a principal engineer at a top tech company find this worth reading?"

9-10 ESSENTIAL: specific benchmark results with numbers; first-hand experience from a recognized engineer; breaking news from insiders; detailed technical comparison with evidence.
7-8 VALUABLE: substantive technical opinion with specific claims; real workflow comparisons; contrarian take backed by reasoning; specific feature analysis.
5-6 FILLER: "this is amazing" with no specifics; generic praise or criticism; news retweet with a brief comment.
3-4 LOW VALUE: emoji-only reactions; promotional tone; vague AI hype; questions without context.
1-2 NOISE: off-topic, spam, bots, crypto shills, bare links with zero added value.

Be HARSH. Most tweets should score 3-6.

ENGAGEMENT CONTEXT (likes, RTs, views) is a signal, never an override:
- 50k+ likes from a notable account = almost certainly newsworthy (7+)
- 10k+ likes = community validation, bump +1-2 even if the text seems generic
- <100 likes = score purely on text quality
- a viral "lol" is still a 3

KNOWN NOTABLE ACCOUNTS (their opinions carry more weight):
{notable}

Here are {count} tweets:

{tweets}

Return JSON: {{"scores": [{{"index": 0, "score": 7}}, {{"index": 1, "score": 3}}, ...]}}
Include every tweet index. Be discriminating."""


def clamp_score(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def boosted(score: int, author: Optional[str]) -> int:
    return clamp_score(score + author_boost(author))


def tweet_line(index: int, item: Item, snippet_chars: int) -> str:
    engagement = format_engagement_for_prompt(item)
    tag = f" ({engagement})" if engagement else ""
    return f"[{index}] {format_handle(item.author)}{tag}: {(item.snippet or '')[:snippet_chars] or 'No content'}"


@dataclass
class ScoringStats:
    scored: int = 0
    fallback: int = 0


class ImportanceScorer:
    def __init__(self, store, completion: CompletionService, model: Optional[str] = None, batch_size: int = BATCH_SIZE) -> None:
        self.store = store
        self.completion = completion
        self.model = model
        self.batch_size = batch_size

    def score(self, tweets: Sequence[Item]) -> ScoringStats:
        stats = ScoringStats()
        if not tweets:
            return stats
        notable = notable_handles_for_prompt()
        total_batches = (len(tweets) + self.batch_size - 1) // self.batch_size
        for start in range(0, len(tweets), self.batch_size):
            batch = list(tweets[start:start + self.batch_size])
            batch_num = start // self.batch_size + 1
            try:
                scores = self._score_batch(batch, notable)
            except PulseError as exc:
                logger.error("Scoring batch %s/%s failed: %s", batch_num, total_batches, exc)
                for item in batch:
                    self.store.update_importance_score(item.id, boosted(FALLBACK_SCORE, item.author))
                stats.fallback += len(batch)
                continue
            for index, score in scores:
                item = batch[index]
                self.store.update_importance_score(item.id, boosted(score, item.author))
            stats.scored += len(scores)
            logger.info("Scored %s/%s tweets in batch %s/%s", len(scores), len(batch), batch_num, total_batches)
        return stats

    def _score_batch(self, batch: List[Item], notable: str) -> List[tuple]:
        tweets = "\n\n".join(tweet_line(i, item, SNIPPET_CHARS) for i, item in enumerate(batch))
        payload = self.completion.complete_json(
            SYSTEM_PROMPT,
            RUBRIC.format(notable=notable, count=len(batch), tweets=tweets),
            model=self.model,
            temperature=0.1,
            max_tokens=2000,
        )
        entries = in_range(validate_entries(payload, ScoreEntry, ["scores"]), len(batch))
        seen = set()
        scores = []
        for entry in entries:
            # Out-of-scale scores are discarded rather than clamped; the item stays unscored.
            if entry.index in seen or not MIN_SCORE <= entry.score <= MAX_SCORE:
                continue
            seen.add(entry.index)
            scores.append((entry.index, entry.score))
        return scores
