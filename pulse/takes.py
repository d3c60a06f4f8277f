"""
Take distillation: one ~15 word sentence per important tweet, generated once
and reused as the clustering input.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from pulse.clients.base import CompletionService
from pulse.errors import PulseError
from pulse.llm_output import TakeEntry, in_range, validate_entries
from pulse.models import Item
from pulse.scoring import tweet_line

logger = logging.getLogger(__name__)

BATCH_SIZE = 40
SNIPPET_CHARS = 400

SYSTEM_PROMPT = (
    'You distill tweets into single-sentence "takes" for a clustering pipeline. Each take should be '
    "~10-20 words capturing the KEY claim, opinion, or finding. Format: \"@handle: [their specific claim]\". "
    "Focus on the current Claude and OpenAI releases and flag tweets about older models or unrelated topics. "
    "Return valid JSON."
)

USER_PROMPT = """Distill each tweet into a single-sentence take. Capture the SPECIFIC claim or opinion, not a vague summary.

Good takes:
- "@antirez: Claude Code's multi-agent approach hurts overall performance"
- "@VictorTaelin: Codex is faster and more accurate but Opus is more compelling to use"
- "@bytes032: Codex outperformed Opus in smart contract security on TerminalBench"

Bad takes (too vague):
- "@someone: Impressive AI model"
- "@someone: Good comparison of the models"

If a tweet is about older models or is off-topic, set take to null.

Tweets:

{tweets}

Return JSON: {{"takes": [{{"index": 0, "take": "..."}}, {{"index": 1, "take": null}}, ...]}}"""


class TakeDistiller:
    def __init__(self, store, completion: CompletionService, model: Optional[str] = None, batch_size: int = BATCH_SIZE) -> None:
        self.store = store
        self.completion = completion
        self.model = model
        self.batch_size = batch_size

    def distill(self, tweets: Sequence[Item]) -> int:
        """Generate and store takes; returns how many were written."""
        generated = 0
        total_batches = (len(tweets) + self.batch_size - 1) // self.batch_size
        for start in range(0, len(tweets), self.batch_size):
            batch = list(tweets[start:start + self.batch_size])
            batch_num = start // self.batch_size + 1
            prompt = USER_PROMPT.format(
                tweets="\n\n".join(tweet_line(i, item, SNIPPET_CHARS) for i, item in enumerate(batch))
            )
            try:
                payload = self.completion.complete_json(
                    SYSTEM_PROMPT, prompt, model=self.model, temperature=0.1, max_tokens=3000
                )
            except PulseError as exc:
                logger.error("Take batch %s/%s failed: %s", batch_num, total_batches, exc)
                continue
            written = set()
            for entry in in_range(validate_entries(payload, TakeEntry, ["takes"]), len(batch)):
                if entry.take and entry.index not in written:
                    self.store.update_take(batch[entry.index].id, entry.take)
                    written.add(entry.index)
            generated += len(written)
            logger.info("Generated %s/%s takes in batch %s/%s", len(written), len(batch), batch_num, total_batches)
        return generated
