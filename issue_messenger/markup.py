"""Chat markup helpers: escaping, links and hour values."""
from __future__ import annotations

import re

DECIMAL_HOURS_RE = re.compile(r"^(\d+(?:[.,]\d+)?)\s*h?$", re.IGNORECASE)
CLOCK_HOURS_RE = re.compile(r"^(\d+):([0-5]?\d)$")
HOURS_MINUTES_RE = re.compile(
    r"^(\d+)\s*h(?:ours?)?\s*(?:(\d+)\s*(?:m(?:in)?)?)?$",
    re.IGNORECASE,
)
MINUTES_RE = re.compile(r"^(\d+)\s*m(?:in)?$", re.IGNORECASE)
MINUTES_PER_HOUR = 60


def escape(text: str | None) -> str:
    """Escape text for Slack mrkdwn.

    See https://api.slack.com/reference/surfaces/formatting#escaping.
    The ampersand goes first so the entities added for angle brackets are
    not escaped again. Applying this twice double-escapes.
    """
    if not text:
        return ""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def link_markdown(url: str, text: str) -> str:
    """Return a Slack link; ``text`` must already be escaped."""
    return f"<{url}|{text}>"


def link_or_text(url: str, name: str) -> str:
    """Link ``name`` to ``url``, or return it escaped when there is no URL."""
    if not url:
        return escape(name)
    return link_markdown(url, escape(name))


def parse_hours(text: str) -> float | None:
    """Parse duration text such as ``1.5``, ``1,5``, ``1:30`` or ``1h 30m``."""
    text = text.strip()
    if not text:
        return None
    match = DECIMAL_HOURS_RE.match(text)
    if match:
        return float(match.group(1).replace(",", "."))
    match = CLOCK_HOURS_RE.match(text)
    if match:
        return int(match.group(1)) + int(match.group(2)) / MINUTES_PER_HOUR
    match = HOURS_MINUTES_RE.match(text)
    if match:
        minutes = int(match.group(2) or 0)
        return int(match.group(1)) + minutes / MINUTES_PER_HOUR
    match = MINUTES_RE.match(text)
    if match:
        return int(match.group(1)) / MINUTES_PER_HOUR
    return None


def format_hours(hours: float) -> str:
    return f"{hours:.2f}"
