"""System-wide messenger defaults loaded from the environment."""
from __future__ import annotations

from enum import StrEnum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TextSetting(StrEnum):
    """Text settings that cascade through the project tree."""

    URL = "messenger_url"
    USERNAME = "messenger_username"
    ICON = "messenger_icon"
    DEFAULT_MENTIONS = "default_mentions"


class Toggle(StrEnum):
    """Boolean feature switches that projects can force on or off."""

    POST_UPDATES = "post_updates"
    POST_PRIVATE_ISSUES = "post_private_issues"
    POST_PRIVATE_NOTES = "post_private_notes"
    UPDATED_INCLUDE_DESCRIPTION = "updated_include_description"
    POST_DB = "post_db"
    POST_PASSWORD = "post_password"


class Settings(BaseSettings):
    """Environment-backed system defaults for every project."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    messenger_url: str | None = Field(default=None, alias="MESSENGER_URL")
    messenger_username: str | None = Field(default=None, alias="MESSENGER_USERNAME")
    messenger_icon: str | None = Field(default=None, alias="MESSENGER_ICON")
    messenger_channel: str | None = Field(default=None, alias="MESSENGER_CHANNEL")
    messenger_default_mentions: str | None = Field(
        default=None,
        alias="MESSENGER_DEFAULT_MENTIONS",
    )

    post_updates: bool = Field(default=True, alias="MESSENGER_POST_UPDATES")
    post_private_issues: bool = Field(
        default=False,
        alias="MESSENGER_POST_PRIVATE_ISSUES",
    )
    post_private_notes: bool = Field(
        default=False,
        alias="MESSENGER_POST_PRIVATE_NOTES",
    )
    updated_include_description: bool = Field(
        default=True,
        alias="MESSENGER_UPDATED_INCLUDE_DESCRIPTION",
    )
    post_db: bool = Field(default=False, alias="MESSENGER_POST_DB")
    post_password: bool = Field(default=False, alias="MESSENGER_POST_PASSWORD")

    def text_default(self, setting: TextSetting) -> str:
        """Return the system value for a text setting, or an empty string."""
        values = {
            TextSetting.URL: self.messenger_url,
            TextSetting.USERNAME: self.messenger_username,
            TextSetting.ICON: self.messenger_icon,
            TextSetting.DEFAULT_MENTIONS: self.messenger_default_mentions,
        }
        return values[setting] or ""

    def toggle_default(self, toggle: Toggle) -> bool:
        """Return the system value for a toggle."""
        values = {
            Toggle.POST_UPDATES: self.post_updates,
            Toggle.POST_PRIVATE_ISSUES: self.post_private_issues,
            Toggle.POST_PRIVATE_NOTES: self.post_private_notes,
            Toggle.UPDATED_INCLUDE_DESCRIPTION: self.updated_include_description,
            Toggle.POST_DB: self.post_db,
            Toggle.POST_PASSWORD: self.post_password,
        }
        return values[toggle]


def get_settings() -> Settings:
    """Load settings from environment variables."""
    return Settings.model_validate({})
