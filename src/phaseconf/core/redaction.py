# src/phaseconf/core/redaction.py
"""Sensitive-data redaction for log output.

Redaction is applied at the point of logging, not at error construction:
the Monitor runs every stored message (and every nested error message)
through redact_sensitive(), and the structlog processor chain runs
redact_event() over console/JSON output.

Rules:
- ``<label><sep><value>`` where label is token|key|secret|password|auth and
  sep is ``=`` or ``:`` (optionally padded) -> ``<label>=[REDACTED]``.
  Single- or double-quoted values are redacted together with their quotes.
- ``<label> <value>`` (whitespace separator) for any value of three or more
  characters, unless the value is an ordinary word from _PROSE_WORDS, so
  "token loaded from root .env" survives intact
- Known literal secret values (e.g. the active credential) are replaced
  wherever they appear, labelled or not
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "[REDACTED]"

# Labels may follow "_" (PHASE_SERVICE_TOKEN, API_KEY) but not a letter (monkey)
_LABELS = r"(?<![A-Za-z])(?:token|key|secret|password|auth)"

# label + "=" / ":" + value; a quoted value runs to its closing quote
_ASSIGNED = re.compile(
    rf"(?P<label>{_LABELS})\s*[=:]\s*"
    r"(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)'|(?P<value>[^\s,;'\"&]+))",
    re.IGNORECASE,
)

# label + whitespace + value
_BARE = re.compile(rf"(?P<label>{_LABELS})\s+(?P<value>[A-Za-z0-9_\-.:]{{3,}})", re.IGNORECASE)

# Words that follow a label in phaseconf's own messages and in ordinary prose
_PROSE_WORDS = frozenset(
    {
        "across", "after", "and", "are", "available", "been", "but", "cannot",
        "check", "could", "did", "does", "entries", "error", "errors", "exists",
        "expired", "failed", "file", "files", "for", "format", "found", "from",
        "had", "has", "have", "header", "holding", "into", "invalid", "length",
        "loaded", "loading", "lookup", "marker", "missing", "moves", "must",
        "name", "not", "origin", "present", "provided", "rejected", "required",
        "resolution", "retrieval", "revoked", "scope", "service", "set",
        "settings", "should", "source", "sources", "that", "the", "then", "this",
        "type", "under", "used", "using", "value", "values", "via", "was",
        "were", "when", "will", "with", "without",
    }
)

# Header-style bearer credentials: "Bearer abc123", "Bearer Service pss_..."
_BEARER = re.compile(r"(?P<label>bearer(?:\s+service)?)\s+(?P<value>[^\s,;'\"]{3,})", re.IGNORECASE)

# Shortest literal we scrub; anything shorter would shred ordinary words.
_MIN_LITERAL_LENGTH = 4


def _assigned_sub(match: re.Match[str]) -> str:
    if match.group("value") == REDACTED:
        return match.group(0)
    return f"{match.group('label')}={REDACTED}"


def _bare_sub(match: re.Match[str]) -> str:
    if match.group("value").lower() in _PROSE_WORDS:
        return match.group(0)
    return f"{match.group('label')}={REDACTED}"


def redact_sensitive(text: str, *, known_secrets: Iterable[str] = ()) -> str:
    """Return ``text`` with credential-like substrings replaced.

    Never raises. Non-string input is returned as ``str(text)`` redacted;
    None becomes an empty string.

    Args:
        text: Message to redact
        known_secrets: Literal values to scrub wherever they occur
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)
    for literal in known_secrets:
        if literal and len(literal) >= _MIN_LITERAL_LENGTH:
            text = text.replace(literal, REDACTED)
    text = _BEARER.sub(lambda m: f"{m.group('label')} {REDACTED}", text)
    text = _ASSIGNED.sub(_assigned_sub, text)
    return _BARE.sub(_bare_sub, text)


def redact_value(value: Any, *, known_secrets: Iterable[str] = ()) -> Any:
    """Recursively redact strings inside dicts/lists/tuples."""
    secrets = tuple(known_secrets)
    if isinstance(value, str):
        return redact_sensitive(value, known_secrets=secrets)
    if isinstance(value, Mapping):
        return {k: redact_value(v, known_secrets=secrets) for k, v in value.items()}
    if isinstance(value, list):
        return [redact_value(v, known_secrets=secrets) for v in value]
    if isinstance(value, tuple):
        return tuple(redact_value(v, known_secrets=secrets) for v in value)
    return value


def truncate(text: str, max_size: int) -> str:
    """Clip ``text`` to ``max_size`` characters with a visible marker."""
    if len(text) <= max_size:
        return text
    marker = "... [truncated]"
    return text[: max(0, max_size - len(marker))] + marker


def redact_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog processor: redact every string value in the event dict."""
    return {key: redact_value(value) for key, value in event_dict.items()}
