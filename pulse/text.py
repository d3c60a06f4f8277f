"""
Cheap, deterministic text helpers: source categorisation, subject detection, truncation.
"""
from __future__ import annotations

from typing import Optional, Sequence
from urllib.parse import urlsplit

from pulse.models import SourceType, Subject
from utils.keywords import (
    CLAUDE_KEYWORDS,
    FORUM_HOSTS,
    NEWS_HOSTS,
    OPENAI_KEYWORDS,
    REDDIT_HOSTS,
    SOCIAL_HOSTS,
)


def _hostname(url: str) -> str:
    if not url:
        return ""
    # Search results sometimes come back without a scheme ("x.com/...").
    normalized = url.strip() if url.strip().startswith("http") else f"https://{url.strip()}"
    try:
        return (urlsplit(normalized).hostname or "").lower()
    except ValueError:
        return ""


def extract_domain(url: str) -> str:
    """'https://www.techcrunch.com/2025/...' -> 'techcrunch.com'"""
    hostname = _hostname(url)
    return hostname[4:] if hostname.startswith("www.") else hostname


def host_matches(hostname: str, hosts: Sequence[str]) -> bool:
    """'vox.com' does not match 'x.com'; 'mobile.x.com' does."""
    for host in hosts:
        if "." in host:
            if hostname == host or hostname.endswith("." + host):
                return True
        elif host in hostname:
            return True
    return False


def classify_source_type(url: str) -> SourceType:
    hostname = _hostname(url)
    if not hostname:
        return SourceType.BLOG
    if host_matches(hostname, SOCIAL_HOSTS):
        return SourceType.TWITTER
    if host_matches(hostname, REDDIT_HOSTS):
        return SourceType.REDDIT
    if host_matches(hostname, FORUM_HOSTS):
        return SourceType.FORUM
    if host_matches(hostname, NEWS_HOSTS):
        return SourceType.NEWS
    return SourceType.BLOG


def is_social_url(url: str) -> bool:
    return classify_source_type(url) == SourceType.TWITTER


def classify_subject(title: Optional[str], snippet: Optional[str]) -> Subject:
    text = f"{title or ''} {snippet or ''}".lower()
    has_claude = any(kw in text for kw in CLAUDE_KEYWORDS)
    has_openai = any(kw in text for kw in OPENAI_KEYWORDS)
    if has_claude and not has_openai:
        return Subject.CLAUDE
    if has_openai and not has_claude:
        return Subject.OPENAI
    # Mentions of both, or of neither: the discovery queries are about both.
    return Subject.BOTH


def truncate(text: Optional[str], max_length: int) -> str:
    if not text:
        return ""
    return text[:max_length] + "..." if len(text) > max_length else text


def clean_handle(author: Optional[str]) -> str:
    return (author or "").strip().lstrip("@")


def format_handle(author: Optional[str]) -> str:
    return f"@{clean_handle(author) or 'unknown'}"
