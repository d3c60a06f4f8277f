"""
HTTP helper with retries + polite headers reused by the service clients.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pulse.errors import ServiceError
from utils.security import redact_secrets

logger = logging.getLogger(__name__)


class HttpClient:
    """
    Thin wrapper over requests.Session. Only idempotent GETs are retried; POSTs to
    the search and completion services fail fast and the caller falls back.
    """

    def __init__(
        self,
        timeout: int = 30,
        max_retries: int = 2,
        user_agent: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.timeout = timeout
        self.session = requests.Session()
        retry = Retry(
            total=max_retries,
            backoff_factor=0.6,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.update(
            {
                "User-Agent": user_agent or "AIPulse-Pipeline/1.0",
                "Accept": "application/json",
            }
        )
        if headers:
            self.session.headers.update(headers)

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ServiceError(f"GET {url} failed: {redact_secrets(str(exc))}") from exc
        return self._decode(resp, "GET", url)

    def post_json(self, url: str, payload: Dict[str, Any], timeout: Optional[int] = None) -> Dict[str, Any]:
        try:
            resp = self.session.post(url, json=payload, timeout=timeout or self.timeout)
        except requests.RequestException as exc:
            raise ServiceError(f"POST {url} failed: {redact_secrets(str(exc))}") from exc
        return self._decode(resp, "POST", url)

    def stream_lines(self, url: str, payload: Dict[str, Any], timeout: Optional[int] = None) -> Iterator[str]:
        """POST and yield decoded response lines as they arrive (server-sent events)."""
        try:
            resp = self.session.post(url, json=payload, timeout=timeout or self.timeout, stream=True)
        except requests.RequestException as exc:
            raise ServiceError(f"POST {url} failed: {redact_secrets(str(exc))}") from exc
        with resp:
            if resp.status_code != 200:
                body = redact_secrets(resp.text[:200])
                raise ServiceError(f"POST {url} responded {resp.status_code}: {body}")
            try:
                for line in resp.iter_lines(decode_unicode=True):
                    if line:
                        yield line
            except requests.RequestException as exc:
                raise ServiceError(f"POST {url} stream broke: {redact_secrets(str(exc))}") from exc

    @staticmethod
    def _decode(resp: requests.Response, method: str, url: str) -> Dict[str, Any]:
        if resp.status_code != 200:
            body = redact_secrets(resp.text[:200])
            logger.warning("HTTP %s failed %s %s", method, resp.status_code, body)
            raise ServiceError(f"{method} {url} responded {resp.status_code}: {body}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise ServiceError(f"{method} {url} returned non-JSON body") from exc
        if not isinstance(data, dict):
            raise ServiceError(f"{method} {url} returned {type(data).__name__}, expected object")
        return data
