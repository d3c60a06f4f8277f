"""
OpenAI-compatible chat-completion client (plain JSON over requests).
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from pulse.errors import ModelOutputError, ServiceError
from pulse.http_client import HttpClient

logger = logging.getLogger(__name__)


class CompletionClient:
    """
    Talks to `<base_url>/chat/completions`. JSON-mode calls back the batch
    stages; streaming calls back the chat assistant.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        timeout: int = 120,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.http = HttpClient(
            timeout=timeout,
            max_retries=0,
            headers={"Authorization": f"Bearer {api_key}"} if api_key else None,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> Dict[str, Any]:
        if not self.configured:
            raise ServiceError("Completion service API key missing")
        payload = {
            "model": model or self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }
        data = self.http.post_json(self.endpoint, payload)
        try:
            choice = data["choices"][0]
            content = choice["message"].get("content") or "{}"
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ModelOutputError("Completion response missing choices") from exc
        if choice.get("finish_reason") == "length":
            logger.warning("Completion hit max tokens (%s) for model %s", max_tokens, payload["model"])
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ModelOutputError(f"Model returned invalid JSON: {content[:120]!r}") from exc
        if not isinstance(parsed, dict):
            raise ModelOutputError(f"Model returned {type(parsed).__name__}, expected a JSON object")
        return parsed

    def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Yield the `delta` object of every streamed chunk."""
        if not self.configured:
            raise ServiceError("Chat completion API key missing")
        payload: Dict[str, Any] = {"model": self.model, "messages": messages, "stream": True}
        if tools:
            payload["tools"] = tools
        for line in self.http.stream_lines(self.endpoint, payload):
            if not line.startswith("data:"):
                continue
            data = line[len("data:"):].strip()
            if data == "[DONE]":
                return
            try:
                chunk = json.loads(data)
            except json.JSONDecodeError:
                logger.debug("Skipping undecodable stream chunk: %s", data[:80])
                continue
            choices = chunk.get("choices") or []
            if choices and isinstance(choices[0].get("delta"), dict):
                yield choices[0]["delta"]
