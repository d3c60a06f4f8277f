"""
Editorial summary: a 2-3 sentence read on the community mood, written from the
highest-importance tweets.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence

from pulse.clients.base import CompletionService
from pulse.errors import ModelOutputError, PulseError
from pulse.llm_output import SummaryPayload
from pulse.models import Item, Subject
from pulse.text import format_handle

logger = logging.getLogger(__name__)

MAX_TWEETS = 300
TWEET_CHARS = 200

SYSTEM_PROMPT = (
    "You write crisp, editorial-quality summaries of tech community sentiment. You're specific about what "
    "people think and why. No filler, no hedging. Write like a senior editor at The Information."
)

USER_PROMPT = """We've analyzed {total} tweets about Claude / Anthropic ({claude} mentions) and OpenAI ({openai} mentions) from the past 24 hours.

Here are the top {shown} tweets by importance:

{tweets}

Write a 2-3 sentence summary of the OVERALL impression from the engineering community right now. What's the vibe? Who's winning hearts and minds? What are the key tensions or surprises?

Be specific: reference actual trends, tools, or sentiments you see in the data. Don't be generic.
Return JSON: {{"summary": "your 2-3 sentence summary here"}}"""


@dataclass
class SummaryReport:
    summary: Optional[str]
    tweet_count: int
    claude_mentions: int
    openai_mentions: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def mention_counts(items: Sequence[Item]) -> Dict[str, int]:
    return {
        Subject.CLAUDE.value: sum(1 for i in items if i.subject in (Subject.CLAUDE, Subject.BOTH)),
        Subject.OPENAI.value: sum(1 for i in items if i.subject in (Subject.OPENAI, Subject.BOTH)),
    }


class EditorialSummarizer:
    def __init__(self, completion: CompletionService, model: Optional[str] = None, max_tweets: int = MAX_TWEETS) -> None:
        self.completion = completion
        self.model = model
        self.max_tweets = max_tweets

    def generate(self, items: Sequence[Item]) -> SummaryReport:
        """Raises PulseError when the model call fails; an empty input yields summary=None."""
        counts = mention_counts(items)
        report = SummaryReport(None, len(items), counts[Subject.CLAUDE.value], counts[Subject.OPENAI.value])
        if not items:
            return report
        shown = list(items[: self.max_tweets])
        tweets = "\n".join(
            f"{format_handle(item.author)} [{item.subject.value}]: {(item.snippet or '')[:TWEET_CHARS]}" for item in shown
        )
        payload = self.completion.complete_json(
            SYSTEM_PROMPT,
            USER_PROMPT.format(
                total=len(items),
                claude=report.claude_mentions,
                openai=report.openai_mentions,
                shown=len(shown),
                tweets=tweets,
            ),
            model=self.model,
            temperature=0.3,
            max_tokens=500,
        )
        try:
            parsed = SummaryPayload.model_validate(payload)
        except ValueError as exc:
            raise ModelOutputError("Summary payload did not match the expected shape") from exc
        report.summary = (parsed.summary or "").strip() or None
        return report

    def summarize(self, items: Sequence[Item]) -> Optional[str]:
        try:
            return self.generate(items).summary
        except PulseError as exc:
            logger.error("Summary generation failed: %s", exc)
            return None
