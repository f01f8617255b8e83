"""Resolve effective messenger settings through the project tree."""
from __future__ import annotations

from issue_messenger.config import Settings, TextSetting, Toggle
from issue_messenger.models import ProjectNode, ResolvedSettings, TriState

NO_CHANNELS = "-"


def split_channels(channel_list: str) -> list[str]:
    """Split a comma separated channel list, trimming and de-duplicating."""
    channels: list[str] = []
    for part in channel_list.split(","):
        channel = part.strip()
        if channel and channel not in channels:
            channels.append(channel)
    return channels


class SettingsResolver:
    """Cascade project overrides over system defaults.

    Lookups walk from a project up through its parents. Text settings and
    channels take the nearest non-empty value; toggles take the nearest
    forced state. The system defaults fill in wherever the chain runs out.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def resolve_text(self, project: ProjectNode | None, setting: TextSetting) -> str:
        """Return the effective text value or an empty string."""
        if project is None:
            return ""
        if project.override is not None:
            value = project.override.text_value(setting)
            if value:
                return value
        parent_value = self.resolve_text(project.parent, setting)
        if parent_value:
            return parent_value
        return self.settings.text_default(setting)

    def resolve_url(self, project: ProjectNode | None) -> str | None:
        return self.resolve_text(project, TextSetting.URL) or None

    def resolve_channels(self, project: ProjectNode | None) -> list[str]:
        """Return the channels a project posts to, in configured order."""
        if project is None:
            return []
        channel_list = ""
        if project.override is not None and project.override.channel_list:
            channel_list = project.override.channel_list.strip()
        if channel_list:
            if channel_list == NO_CHANNELS:
                return []
            return split_channels(channel_list)
        parent_channels = self.resolve_channels(project.parent)
        if parent_channels:
            return parent_channels
        system_channels = self.settings.messenger_channel
        if not system_channels or system_channels == NO_CHANNELS:
            return []
        return split_channels(system_channels)

    def resolve_toggle(self, project: ProjectNode | None, toggle: Toggle) -> bool:
        """Return whether a toggle is on for a project."""
        if project is None:
            return False
        value, _explicit = self._lookup_toggle(project, toggle)
        return value

    def _lookup_toggle(self, project: ProjectNode, toggle: Toggle) -> tuple[bool, bool]:
        """Return ``(value, explicit)`` where explicit means a project forced it."""
        state = TriState.INHERIT
        if project.override is not None:
            state = project.override.toggle_state(toggle)
        if state == TriState.FORCE_OFF:
            return False, True
        if state == TriState.FORCE_ON:
            return True, True
        if project.parent is not None:
            value, explicit = self._lookup_toggle(project.parent, toggle)
            if explicit:
                return value, True
        return self.settings.toggle_default(toggle), False

    def resolve(self, project: ProjectNode | None) -> ResolvedSettings:
        """Resolve every setting for a project at once."""
        return ResolvedSettings(
            url=self.resolve_url(project),
            username=self.resolve_text(project, TextSetting.USERNAME) or None,
            icon=self.resolve_text(project, TextSetting.ICON) or None,
            channels=self.resolve_channels(project),
            toggles={toggle: self.resolve_toggle(project, toggle) for toggle in Toggle},
        )
