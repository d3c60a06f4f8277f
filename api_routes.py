"""API routes for the AI Pulse dashboard."""
from __future__ import annotations

import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from flask import Response, jsonify, render_template, request, stream_with_context

from pulse.clustering import cluster_from_dict, hydrate_cluster_images
from pulse.errors import PulseError, RunInProgressError
from pulse.models import BiasEntry, BiasResult, FeedFilter, Subject
from pulse.status import build_health, build_monitor
from pulse.timeutil import relative_time
from utils.security import redact_secrets

logger = logging.getLogger("pulse.web")

MAX_FEED_LIMIT = 100
DEFAULT_FEED_LIMIT = 50
PAGE_TWEETS = 30
METRICS_CACHE_KEY = "api:metrics"


def _cron_authorized(configured: Optional[str]) -> bool:
    supplied = request.headers.get("x-cron-secret") or request.args.get("secret")
    if not configured or not supplied:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), configured.encode("utf-8"))


def _bias_entries(payload: Dict[str, Any]) -> List[BiasEntry]:
    raw = payload.get("items")
    if not isinstance(raw, list):
        return []
    return [
        BiasEntry(str(entry["id"]), str(entry.get("text") or ""))
        for entry in raw
        if isinstance(entry, dict) and entry.get("id") is not None
    ]


def register_routes(
    app,
    cache,
    settings,
    store,
    pipeline_factory: Callable[[], Any],
    summarizer,
    bias_classifier,
    chat_session,
):
    """Register all routes with the Flask app.

    Args:
        app: Flask app instance.
        cache: SmartCache instance for read endpoints.
        settings: PulseSettings.
        store: Store backing every read.
        pipeline_factory: Zero-argument callable returning a pipeline with `run()`.
        summarizer: EditorialSummarizer for on-demand summaries.
        bias_classifier: BiasClassifier for on-demand stance classification.
        chat_session: ChatSession streaming the assistant.
    """

    app.add_template_filter(relative_time, "relative_time")

    @app.context_processor
    def inject_globals():
        """Inject global variables into templates."""
        return {
            "build_time": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
        }

    def _metrics_payload() -> Dict[str, Any]:
        claude = store.latest_metric(Subject.CLAUDE)
        openai = store.latest_metric(Subject.OPENAI)
        last_run = store.latest_completed_run()
        return {
            "claude": claude.to_dict() if claude else None,
            "openai": openai.to_dict() if openai else None,
            "last_run": last_run.to_dict() if last_run else None,
        }

    def _page_context() -> Dict[str, Any]:
        latest = store.latest_completed_run()
        blob = latest.summary_blob() if latest else {}
        clusters = [cluster_from_dict(entry) for entry in blob.get("clusters") or [] if isinstance(entry, dict)]
        if clusters:
            images = store.image_urls_for([source.url for cluster in clusters for source in cluster.sources])
            hydrate_cluster_images(clusters, images)

        cached_bias = blob.get("cached_bias") if isinstance(blob.get("cached_bias"), dict) else {}
        bias_map = {
            entry["id"]: entry.get("bias", "neutral")
            for entry in cached_bias.get("items") or []
            if isinstance(entry, dict) and "id" in entry
        }
        metrics = _metrics_payload()
        return {
            "clusters": clusters,
            "total_analyzed": store.total_items(),
            "total_kept": blob.get("total_kept", 0),
            "last_updated": latest.completed_at if latest else None,
            "last_run": latest,
            "tweets": store.recent_tweets(PAGE_TWEETS),
            "bias_map": bias_map,
            "bias_summary": cached_bias.get("summary"),
            "overall_summary": blob.get("cached_summary"),
            "head_to_head": store.head_to_head(),
            "claude_use_cases": store.use_cases(Subject.CLAUDE),
            "openai_use_cases": store.use_cases(Subject.OPENAI),
            "claude_metric": metrics["claude"],
            "openai_metric": metrics["openai"],
        }

    @app.route("/")
    def index():
        """Dashboard page rendered from the latest completed run."""
        return render_template("index.html", **_page_context())

    @app.route("/api/cron", methods=["POST"])
    def api_cron():
        """Trigger one pipeline run. Guarded by the shared cron secret."""
        if not _cron_authorized(settings.cron_secret):
            logger.warning("Rejected cron request from %s", request.remote_addr)
            return jsonify({"error": "Unauthorized"}), 401

        try:
            stats = pipeline_factory().run()
        except RunInProgressError as exc:
            logger.info("Cron request ignored: %s", exc)
            return jsonify({"error": "Run already in progress", "run_id": exc.run_id}), 409
        except Exception as exc:
            logger.error("Cron run failed: %s", exc, exc_info=True)
            return jsonify({"error": "Cron run failed", "details": redact_secrets(str(exc))}), 500

        cache.clear()
        return jsonify({"success": True, **stats.to_dict()})

    @app.route("/api/feed")
    def api_feed():
        """Paginated item feed with an optional subject/polarity filter."""
        try:
            feed_filter = FeedFilter(request.args.get("filter", FeedFilter.ALL.value))
        except ValueError:
            return jsonify({"error": "Invalid filter", "allowed": [f.value for f in FeedFilter]}), 400
        limit = request.args.get("limit", DEFAULT_FEED_LIMIT, type=int)
        limit = max(1, min(MAX_FEED_LIMIT, limit))
        offset = max(0, request.args.get("offset", 0, type=int))
        since = request.args.get("since") or None

        try:
            items = store.feed(feed_filter, limit=limit, offset=offset, since=since)
            total = store.feed_total(feed_filter, since=since)
        except Exception as exc:
            logger.error("Feed query failed: %s", exc, exc_info=True)
            return jsonify({"error": "Failed to load feed"}), 500
        return jsonify(
            {
                "items": [item.to_dict() for item in items],
                "total": total,
                "has_more": offset + len(items) < total,
            }
        )

    @app.route("/api/metrics")
    def api_metrics():
        """Latest sentiment metrics per subject plus the last completed run."""
        try:
            return jsonify(cache.get_or_set(METRICS_CACHE_KEY, _metrics_payload))
        except Exception as exc:
            logger.error("Metrics query failed: %s", exc, exc_info=True)
            return jsonify({"error": "Failed to load metrics"}), 500

    @app.route("/api/monitor")
    def api_monitor():
        """Countdown data for the next scheduled run."""
        return jsonify(build_monitor(store.latest_completed_run(), settings.cron_interval_hours))

    @app.route("/api/summary")
    def api_summary():
        """On-demand editorial summary of the current tweet set."""
        try:
            report = summarizer.generate(store.tweets_for_summary())
        except PulseError as exc:
            logger.error("Summary generation failed: %s", exc)
            return jsonify({"summary": None}), 500
        return jsonify(report.to_dict())

    @app.route("/api/bias", methods=["POST"])
    def api_bias():
        """Classify arbitrary items as leaning claude, openai or neutral."""
        entries = _bias_entries(request.get_json(silent=True) or {})
        result = bias_classifier.classify(entries)
        if result.failed:
            empty = BiasResult.empty()
            return jsonify({"items": empty.items, "summary": empty.summary}), 500
        return jsonify({"items": result.items, "summary": result.summary})

    @app.route("/api/chat", methods=["POST"])
    def api_chat():
        """Stream an assistant answer as server-sent events."""
        payload = request.get_json(silent=True) or {}
        message = payload.get("message")
        if not isinstance(message, str) or not message.strip():
            return jsonify({"error": "Message is required"}), 400
        events = chat_session.stream(message.strip(), payload.get("history"))
        return Response(
            stream_with_context(events),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.route("/api/health")
    def api_health():
        """Service configuration flags and cache state."""
        try:
            last_run = store.latest_run()
        except Exception as exc:
            logger.error("Health check could not read runs: %s", exc, exc_info=True)
            payload = build_health(settings, cache.snapshot())
            payload["status"] = "degraded"
            return jsonify(payload), 503
        return jsonify(build_health(settings, cache.snapshot(), last_run))
