"""
Streaming chat assistant with an optional web-search tool round.

The session streams model text as it arrives. If the model asks for the
`web_search` tool, the searches run in parallel, their results are fed back and
a second streamed answer follows. Output is a sequence of server-sent-event
frames: content, search_start, search_complete, done, error.
"""
from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from pulse.clients.base import CompletionService, SearchService
from pulse.errors import PulseError
from pulse.models import Citation
from pulse.timeutil import to_iso, utc_now

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
MAX_SEARCHES = 3
MIN_RESULTS = 3
MAX_RESULTS = 20
DEFAULT_RESULTS = 10
SEARCH_WINDOW = timedelta(weeks=2)
RESULT_TEXT_CHARS = 1500
PROMPT_TEXT_CHARS = 1200

SYSTEM_PROMPT = """You are an AI sentiment analyst specializing in the Claude/Anthropic vs OpenAI/ChatGPT landscape. You help users understand community sentiment, opinions, and trends about these AI companies and their products.

When answering questions:
- Be specific and reference actual data points and sources when available
- Compare and contrast Claude and OpenAI when relevant
- Stay scoped to AI topics (Claude, Anthropic, OpenAI, ChatGPT, GPT, coding assistants, AI agents, etc.)
- If the question is off-topic, politely redirect to AI sentiment topics
- Use a confident, editorial tone, like a Bloomberg tech analyst

If you use web search results, cite your sources with [Title](URL) format."""

SEARCH_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "web_search",
        "description": (
            "Search the web for recent information about AI companies, models, and sentiment. "
            "Use for any question requiring current data."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "searches": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "query": {"type": "string", "description": "Natural language search query about AI topics"},
                            "numResults": {"type": "number", "description": "Number of results (5-10)", "default": 10},
                        },
                        "required": ["query"],
                    },
                    "maxItems": MAX_SEARCHES,
                },
            },
            "required": ["searches"],
        },
    },
}


def sse_frame(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def trim_history(history: Any) -> List[Dict[str, str]]:
    """Keep the last 20 well-formed user/assistant turns."""
    if not isinstance(history, list):
        return []
    cleaned = [
        {"role": msg["role"], "content": msg["content"]}
        for msg in history
        if isinstance(msg, dict) and msg.get("role") in ("user", "assistant") and isinstance(msg.get("content"), str)
    ]
    return cleaned[-HISTORY_LIMIT:]


def clamp_results(value: Any) -> int:
    try:
        requested = int(value)
    except (TypeError, ValueError):
        requested = DEFAULT_RESULTS
    return max(MIN_RESULTS, min(MAX_RESULTS, requested))


def parse_searches(arguments: str) -> List[Dict[str, Any]]:
    """Tool arguments -> [{"query", "num_results"}]; tolerant of the shapes models actually send."""
    try:
        args = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return []
    if not isinstance(args, dict):
        return []
    searches = args.get("searches")
    if isinstance(searches, dict):
        searches = [searches]
    if searches is None and args.get("query"):
        searches = [{"query": args["query"], "numResults": args.get("numResults")}]
    if not isinstance(searches, list):
        return []
    parsed = []
    for search in searches:
        if isinstance(search, dict) and isinstance(search.get("query"), str) and search["query"].strip():
            parsed.append({"query": search["query"].strip(), "num_results": clamp_results(search.get("numResults"))})
    return parsed


def format_results_for_model(results: Sequence[Tuple[str, List[Citation]]]) -> str:
    blocks = []
    for query, citations in results:
        if not citations:
            blocks.append(f"[{query}]\nNo results found.")
            continue
        lines = []
        for c in citations:
            date = f" | {c.published_date[:10]}" if c.published_date else ""
            lines.append(f"- {c.title}{date}\n  {c.url}\n  {(c.snippet or '')[:PROMPT_TEXT_CHARS]}")
        blocks.append(f"[{query}]\n" + "\n".join(lines))
    return "\n\n".join(blocks)


class _ToolCallBuffer:
    """Accumulates streamed tool-call fragments by their index."""

    def __init__(self) -> None:
        self.calls: Dict[int, Dict[str, Any]] = {}

    def add(self, fragments: Sequence[Dict[str, Any]]) -> None:
        for fragment in fragments:
            index = fragment.get("index", 0)
            call = self.calls.setdefault(index, {"id": "", "type": "function", "function": {"name": "", "arguments": ""}})
            if fragment.get("id"):
                call["id"] = fragment["id"]
            function = fragment.get("function") or {}
            if function.get("name"):
                call["function"]["name"] = function["name"]
            if function.get("arguments"):
                call["function"]["arguments"] += function["arguments"]

    def ordered(self) -> List[Dict[str, Any]]:
        return [self.calls[i] for i in sorted(self.calls)]


class ChatSession:
    def __init__(self, completion: CompletionService, search: SearchService, max_workers: int = MAX_SEARCHES) -> None:
        self.completion = completion
        self.search = search
        self.max_workers = max_workers

    def stream(self, message: str, history: Any = None) -> Iterator[str]:
        try:
            yield from self._stream(message, history)
        except PulseError as exc:
            logger.error("Chat stream failed: %s", exc)
            yield sse_frame("error", {"error": str(exc)})

    def _stream(self, message: str, history: Any) -> Iterator[str]:
        messages: List[Dict[str, Any]] = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages += trim_history(history)
        messages.append({"role": "user", "content": message})

        content = ""
        tool_calls = _ToolCallBuffer()
        for delta in self.completion.stream_chat(messages, tools=[SEARCH_TOOL]):
            if delta.get("content"):
                content += delta["content"]
                yield sse_frame("content", {"content": delta["content"]})
            if delta.get("tool_calls"):
                tool_calls.add(delta["tool_calls"])

        calls = tool_calls.ordered()
        searches = [s for call in calls for s in parse_searches(call["function"]["arguments"])][:MAX_SEARCHES]
        if not searches:
            if calls and not content:
                logger.warning("Unusable search tool call, answering without search")
                for delta in self.completion.stream_chat(messages):
                    if delta.get("content"):
                        yield sse_frame("content", {"content": delta["content"]})
            yield sse_frame("done", {"exaUsed": False})
            return

        yield sse_frame("search_start", {"queries": [s["query"] for s in searches]})
        results = self._run_searches(searches)
        total_sources = sum(len(citations) for _, citations in results)
        yield sse_frame(
            "search_complete",
            {
                "totalSources": total_sources,
                "searches": [
                    {
                        "query": query,
                        "sources": [{"title": c.title, "url": c.url, "date": c.published_date} for c in citations],
                    }
                    for query, citations in results
                ],
            },
        )

        results_text = format_results_for_model(results)
        messages.append({"role": "assistant", "content": content or None, "tool_calls": calls})
        messages += [{"role": "tool", "tool_call_id": call["id"], "content": results_text} for call in calls]
        for delta in self.completion.stream_chat(messages):
            if delta.get("content"):
                yield sse_frame("content", {"content": delta["content"]})
        yield sse_frame("done", {"exaUsed": True, "totalSources": total_sources})

    def _search_one(self, search: Dict[str, Any], start_date: str) -> Tuple[str, List[Citation]]:
        try:
            citations = self.search.search(
                search["query"],
                num_results=search["num_results"],
                start_published_date=start_date,
                max_chars=RESULT_TEXT_CHARS,
            )
        except PulseError as exc:
            logger.error("Chat search failed for %r: %s", search["query"], exc)
            citations = []
        return search["query"], citations

    def _run_searches(self, searches: List[Dict[str, Any]]) -> List[Tuple[str, List[Citation]]]:
        start_date = to_iso(utc_now() - SEARCH_WINDOW)
        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(searches)))) as executor:
            # map keeps the request order for the model prompt.
            return list(executor.map(lambda s: self._search_one(s, start_date), searches))
