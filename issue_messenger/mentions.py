"""Mention lists for notification text."""
from __future__ import annotations

import re

from issue_messenger.config import TextSetting
from issue_messenger.models import ProjectNode
from issue_messenger.resolver import SettingsResolver

# Chat handles are lowercase letters, digits, dashes, dots and underscores,
# starting with a letter or digit.
USERNAME_RE = re.compile(r"@[a-z0-9][a-z0-9_\-.]*")


def extract_usernames(text: str | None) -> list[str]:
    """Return unique @handles in order of first appearance."""
    if not text:
        return []
    return list(dict.fromkeys(USERNAME_RE.findall(text)))


def mentions(
    resolver: SettingsResolver,
    project: ProjectNode | None,
    text: str | None,
) -> str | None:
    """Return a ``To: ...`` line for default mentions plus handles in text."""
    defaults = resolver.resolve_text(project, TextSetting.DEFAULT_MENTIONS)
    names = [name.strip() for name in defaults.split(",") if name.strip()]
    names.extend(extract_usernames(text))
    if not names:
        return None
    return f"To: {', '.join(dict.fromkeys(names))}"
