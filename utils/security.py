import re


def redact_secrets(text: str) -> str:
    """Redact API keys, cron secrets and bearer tokens from logs and error strings."""
    if not isinstance(text, str):
        return text

    redacted = text

    # Query params like apiKey=, api_key=, key=, token=, secret=
    redacted = re.sub(r"(?i)(api[_-]?key|key|token|secret)=([^&\s]+)", r"\1=***REDACTED***", redacted)

    # Header echoes: x-api-key / x-cron-secret
    redacted = re.sub(r"(?i)(x-(?:api-key|cron-secret))(['\"]?\s*[:=]\s*['\"]?)([A-Za-z0-9._\-]+)", r"\1\2***REDACTED***", redacted)

    # Bearer tokens, with or without the Authorization prefix
    redacted = re.sub(r"(?i)Bearer\s+[A-Za-z0-9._\-]+", "Bearer ***REDACTED***", redacted)

    # OpenAI-style keys that leak into provider error bodies
    redacted = re.sub(r"sk-[A-Za-z0-9_\-]{8,}", "sk-***REDACTED***", redacted)

    return redacted


def is_configured_key(value: str) -> bool:
    """Return True if an env var-like key is configured (not empty or placeholder)."""
    if not value:
        return False
    s = value.strip()
    if not s:
        return False
    return ('YOUR_' not in s) and ('your_' not in s) and not s.endswith('change-me')
