"""Data models shared by the resolver, renderer and notifier."""
from __future__ import annotations

from enum import IntEnum, StrEnum

from pydantic import BaseModel, Field, field_validator

from issue_messenger.config import TextSetting, Toggle

JSONDict = dict[str, object]


class TriState(IntEnum):
    """Per-project toggle state."""

    INHERIT = 0
    FORCE_OFF = 1
    FORCE_ON = 2


class ProjectOverride(BaseModel):
    """Per-project messenger settings; unset values are inherited."""

    url: str | None = None
    username: str | None = None
    icon: str | None = None
    channel_list: str | None = None
    default_mentions: str | None = None
    toggles: dict[Toggle, TriState] = Field(default_factory=dict)

    @field_validator("toggles", mode="before")
    @classmethod
    def drop_unknown_toggles(cls, value: object) -> object:
        """Ignore toggles this package does not handle, such as ``post_wiki``."""
        if not isinstance(value, dict):
            return value
        known = {toggle.value for toggle in Toggle}
        return {key: state for key, state in value.items() if str(key) in known}

    def text_value(self, setting: TextSetting) -> str:
        """Return the override value for a text setting, or an empty string."""
        values = {
            TextSetting.URL: self.url,
            TextSetting.USERNAME: self.username,
            TextSetting.ICON: self.icon,
            TextSetting.DEFAULT_MENTIONS: self.default_mentions,
        }
        value = values[setting] or ""
        return value if value.strip() else ""

    def toggle_state(self, toggle: Toggle) -> TriState:
        return self.toggles.get(toggle, TriState.INHERIT)


class ProjectNode(BaseModel):
    """A project in the project tree."""

    identifier: str
    name: str
    url: str = ""
    parent: ProjectNode | None = None
    override: ProjectOverride | None = None


class ResolvedSettings(BaseModel):
    """Fully cascaded messenger settings for one project."""

    url: str | None
    username: str | None
    icon: str | None
    channels: list[str]
    toggles: dict[Toggle, bool]


class ChangeCategory(StrEnum):
    """Kind of property a change record touches."""

    ATTRIBUTE = "attr"
    CUSTOM_FIELD = "cf"
    ATTACHMENT = "attachment"
    DB_RELATION = "db_relation"
    PASSWORD_RELATION = "password_relation"


class ChangeRecord(BaseModel):
    """One field change on an issue."""

    # Categories outside ChangeCategory are rendered as plain attributes.
    category: str
    key: str
    old_value: str | None = None
    value: str | None = None

    @property
    def raw_text(self) -> str:
        return self.value or ""


class RenderedField(BaseModel):
    """A display-ready field for a message attachment."""

    title: str
    value: str
    key: str
    compact: bool = Field(default=True, serialization_alias="short")


class EntityKind(StrEnum):
    """Entity tables the renderer can look values up in."""

    TRACKER = "tracker"
    PROJECT = "project"
    STATUS = "status"
    PRIORITY = "priority"
    CATEGORY = "category"
    PRINCIPAL = "principal"
    VERSION = "version"
    ATTACHMENT = "attachment"
    ISSUE = "issue"
    DB_ENTRY = "db_entry"
    PASSWORD = "password"


class Entity(BaseModel):
    """A display-name-capable record returned by an entity lookup."""

    id: str
    name: str
    url: str = ""


class CustomField(BaseModel):
    """Custom field metadata."""

    id: str
    name: str
    field_format: str = "string"


class Issue(BaseModel):
    """The issue a change event belongs to."""

    id: str
    subject: str
    url: str = ""
    project: ProjectNode
    is_private: bool = False


class IssueChangeEvent(BaseModel):
    """An issue update with its changed fields and optional notes."""

    issue: Issue
    author: str
    notes: str | None = None
    private_notes: bool = False
    changes: list[ChangeRecord] = Field(default_factory=list)


class MessageAttachment(BaseModel):
    """Attachment block holding free text and rendered fields."""

    text: str | None = None
    fields: list[RenderedField] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.text and not self.fields


class Payload(BaseModel):
    """Webhook payload for a single channel."""

    text: str
    link_names: bool = True
    username: str | None = None
    icon_emoji: str | None = None
    icon_url: str | None = None
    channel: str | None = None
    attachments: list[MessageAttachment] = Field(default_factory=list)

    def to_json(self) -> JSONDict:
        """Return the JSON body posted to the webhook."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Delivery(BaseModel):
    """One payload addressed to one webhook URL."""

    url: str
    payload: Payload
