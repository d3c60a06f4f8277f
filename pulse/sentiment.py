"""
Sentiment and stance classification backed by the completion service.

SentimentClassifier labels items positive/negative/neutral with an intensity
score; BiasClassifier decides which side (Claude, OpenAI or neither) a piece of
text favours. Both degrade to neutral when the model call fails.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from pulse.clients.base import CompletionService
from pulse.errors import PulseError
from pulse.llm_output import BiasEntryOut, SentimentEntry, in_range, validate_entries
from pulse.models import Bias, BiasEntry, BiasResult, Item, Sentiment, SentimentResult

logger = logging.getLogger(__name__)

SENTIMENT_BATCH_SIZE = 25
SENTIMENT_SNIPPET_CHARS = 250
BIAS_TEXT_CHARS = 300
SCORE_BOUND = 100

SENTIMENT_SYSTEM_PROMPT = (
    "You classify sentiment in technical AI discussions from an engineer's perspective. You understand "
    "developer slang and internet culture. Be decisive; most content is opinionated. Return valid JSON."
)

SENTIMENT_PROMPT = """You are classifying sentiment from the perspective of a technical engineer evaluating AI model capabilities.

These posts are about Claude/Anthropic and OpenAI products: model quality, coding ability, developer tools and real-world performance.

For each post, determine:
1. sentiment: "positive", "negative", or "neutral"
2. sentiment_score: integer from -100 (devastatingly negative) to +100 (ecstatically positive)

- POSITIVE: great benchmarks, impressive demos, good developer experience, favorable comparisons, "it just works"
- NEGATIVE: hallucinations, regressions, bad API experience, unfavorable benchmarks, frustration with quality
- NEUTRAL: factual announcements without opinion, balanced comparisons, release notes, pricing without judgment

Engineer slang is opinionated: "cracked", "goated", "insane" = very positive. "mid", "cope", "it's over" = negative.
Don't default to neutral. "best model ever" is +85, "it's pretty good" is +30, "absolute garbage" is -80.

Here are {count} posts:

{posts}

Return a JSON object: {{"results": [{{"index": <number>, "sentiment": "positive"|"negative"|"neutral", "sentiment_score": <-100 to 100>}}]}}"""

BIAS_SYSTEM_PROMPT = """You classify tech content about Claude/Anthropic vs OpenAI into three categories:
- "claude": Favors Claude, Anthropic, Claude Code. Praises Claude's performance, features, or team. Says Claude is better.
- "openai": Favors OpenAI, GPT, Codex, ChatGPT. Praises OpenAI's performance, features, or team. Says OpenAI is better.
- "neutral": Stating facts without taking sides, comparing both equally, or discussing the broader landscape.

If content mentions BOTH but clearly favors one side, classify it as that side.
If it's genuinely balanced or just reporting facts, it's neutral.
Return valid JSON."""

BIAS_PROMPT = """Classify each item as "claude", "openai", or "neutral":

{items}

Return JSON: {{"results": [{{"index": 0, "bias": "claude"}}, {{"index": 1, "bias": "neutral"}}, ...]}}"""


def clamp_sentiment_score(score: float) -> int:
    return int(max(-SCORE_BOUND, min(SCORE_BOUND, round(score))))


def parse_sentiment(label: str) -> Sentiment:
    try:
        return Sentiment(label)
    except ValueError:
        return Sentiment.NEUTRAL


def parse_bias(label: str) -> Bias:
    try:
        return Bias(label)
    except ValueError:
        return Bias.NEUTRAL


class SentimentClassifier:
    def __init__(self, completion: CompletionService, model: Optional[str] = None, batch_size: int = SENTIMENT_BATCH_SIZE) -> None:
        self.completion = completion
        self.model = model
        self.batch_size = batch_size

    def classify(self, items: Sequence[Item]) -> List[SentimentResult]:
        """One result per input item, in input order."""
        results: List[SentimentResult] = []
        for start in range(0, len(items), self.batch_size):
            results.extend(self._classify_batch(list(items[start:start + self.batch_size])))
        if results:
            counts = {s: sum(1 for r in results if r.sentiment == s) for s in Sentiment}
            logger.info(
                "Sentiment: %s positive, %s negative, %s neutral",
                counts[Sentiment.POSITIVE],
                counts[Sentiment.NEGATIVE],
                counts[Sentiment.NEUTRAL],
            )
        return results

    def _classify_batch(self, batch: List[Item]) -> List[SentimentResult]:
        posts = "\n\n".join(
            f"[{i}] Subject: {item.subject.value} | Source: {item.source_type.value}\n"
            f"  Title: {item.title or ''}\n"
            f"  Snippet: {(item.snippet or '')[:SENTIMENT_SNIPPET_CHARS] or 'N/A'}"
            for i, item in enumerate(batch)
        )
        parsed: Dict[int, SentimentEntry] = {}
        try:
            payload = self.completion.complete_json(
                SENTIMENT_SYSTEM_PROMPT,
                SENTIMENT_PROMPT.format(count=len(batch), posts=posts),
                model=self.model,
                temperature=0.2,
                max_tokens=2000,
            )
            for entry in in_range(validate_entries(payload, SentimentEntry, ["results", "classifications"]), len(batch)):
                parsed.setdefault(entry.index, entry)
        except PulseError as exc:
            logger.error("Sentiment batch of %s failed: %s", len(batch), exc)

        results = []
        for i, item in enumerate(batch):
            entry = parsed.get(i)
            if entry is None:
                results.append(SentimentResult(item.id, Sentiment.NEUTRAL, 0))
                continue
            results.append(
                SentimentResult(item.id, parse_sentiment(entry.sentiment), clamp_sentiment_score(entry.sentiment_score))
            )
        return results


class BiasClassifier:
    def __init__(self, completion: CompletionService, model: Optional[str] = None) -> None:
        self.completion = completion
        self.model = model

    def classify(self, entries: Sequence[BiasEntry]) -> BiasResult:
        if not entries:
            return BiasResult.empty()
        listing = "\n\n".join(f"[{i}] {entry.text[:BIAS_TEXT_CHARS]}" for i, entry in enumerate(entries))
        try:
            payload = self.completion.complete_json(
                BIAS_SYSTEM_PROMPT,
                BIAS_PROMPT.format(items=listing),
                model=self.model,
                temperature=0.1,
                max_tokens=2000,
            )
        except PulseError as exc:
            logger.error("Bias classification of %s items failed: %s", len(entries), exc)
            result = self._tally(entries, {})
            result.failed = True
            return result

        labels: Dict[int, Bias] = {}
        for entry in in_range(validate_entries(payload, BiasEntryOut, ["results"]), len(entries)):
            labels.setdefault(entry.index, parse_bias(entry.bias))
        result = self._tally(entries, labels)
        logger.info(
            "Bias: %s claude, %s openai, %s neutral",
            result.summary[Bias.CLAUDE.value],
            result.summary[Bias.OPENAI.value],
            result.summary[Bias.NEUTRAL.value],
        )
        return result

    @staticmethod
    def _tally(entries: Sequence[BiasEntry], labels: Dict[int, Bias]) -> BiasResult:
        # Entries the model skipped count as neutral.
        result = BiasResult.empty()
        for i, entry in enumerate(entries):
            bias = labels.get(i, Bias.NEUTRAL)
            result.items.append({"id": entry.id, "bias": bias.value})
            result.summary[bias.value] += 1
        return result
