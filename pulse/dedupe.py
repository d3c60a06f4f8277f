"""
URL normalisation, hashing and deduplication helpers.
"""
from __future__ import annotations

import hashlib
from typing import Callable, Hashable, Iterable, List, Sequence, TypeVar

T = TypeVar("T")


def normalize_url(url: str) -> str:
    """Lower-case, trim and drop trailing slashes so trivially different URLs collapse."""
    if not url:
        return ""
    return url.strip().lower().rstrip("/")


def make_digest(parts: Sequence[str]) -> str:
    joined = "|".join(part or "" for part in parts)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


def hash_url(url: str) -> str:
    return make_digest([normalize_url(url)])


def dedupe_by_key(items: Iterable[T], key_fn: Callable[[T], Hashable]) -> List[T]:
    seen = set()
    result: List[T] = []
    for item in items:
        key = key_fn(item)
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result
