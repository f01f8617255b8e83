"""Render issue change records as message attachment fields."""
from __future__ import annotations

from collections.abc import Mapping
from typing import NamedTuple

from loguru import logger

from issue_messenger.config import Toggle
from issue_messenger.lookups import EntityResolver, FieldFormatter
from issue_messenger.markup import escape, format_hours, link_or_text, parse_hours
from issue_messenger.models import (
    ChangeCategory,
    ChangeRecord,
    EntityKind,
    ProjectNode,
    RenderedField,
)
from issue_messenger.resolver import SettingsResolver

EMPTY_VALUE = "-"
ID_SUFFIX = "_id"

DEFAULT_LABELS: dict[str, str] = {
    "field_assigned_to": "Assignee",
    "field_author": "Author",
    "field_category": "Category",
    "field_db_relation": "DB Relation",
    "field_description": "Description",
    "field_done_ratio": "% Done",
    "field_due_date": "Due date",
    "field_estimated_hours": "Estimated time",
    "field_fixed_version": "Target version",
    "field_is_private": "Private",
    "field_parent_issue": "Parent task",
    "field_password_relation": "Password Relation",
    "field_priority": "Priority",
    "field_project": "Project",
    "field_start_date": "Start date",
    "field_status": "Status",
    "field_subject": "Subject",
    "field_title": "Title",
    "field_tracker": "Tracker",
    "label_attachment": "Attachment",
    "label_copied_from": "Copied from",
}

# Keys whose raw value is an id in another table.
ENTITY_KEYS: dict[str, EntityKind] = {
    "tracker": EntityKind.TRACKER,
    "project": EntityKind.PROJECT,
    "status": EntityKind.STATUS,
    "priority": EntityKind.PRIORITY,
    "category": EntityKind.CATEGORY,
    "assigned_to": EntityKind.PRINCIPAL,
    "author": EntityKind.PRINCIPAL,
    "fixed_version": EntityKind.VERSION,
}
WIDE_KEYS = frozenset({"title", "subject"})
SUPPRESSED_KEYS = frozenset({"description"})
ISSUE_LINK_KEYS = frozenset({"parent", "copied_from"})
LABEL_KEYS = {"parent": "field_parent_issue", "copied_from": "label_copied_from"}


class RelationKind(NamedTuple):
    """An optional link to a project-specific entity type."""

    toggle: Toggle
    entity_kind: EntityKind
    label: str


RELATION_KINDS: dict[ChangeCategory, RelationKind] = {
    ChangeCategory.DB_RELATION: RelationKind(
        Toggle.POST_DB,
        EntityKind.DB_ENTRY,
        "field_db_relation",
    ),
    ChangeCategory.PASSWORD_RELATION: RelationKind(
        Toggle.POST_PASSWORD,
        EntityKind.PASSWORD,
        "field_password_relation",
    ),
}


class _Draft(NamedTuple):
    title: str
    key: str
    value: str
    field_format: str | None = None


def classify(record: ChangeRecord) -> ChangeCategory:
    """Return the category, treating relation attributes as relation kinds.

    Unknown categories, such as issue-to-issue ``relation`` changes, are
    classified as plain attributes.
    """
    try:
        category = ChangeCategory(record.category)
    except ValueError:
        return ChangeCategory.ATTRIBUTE
    if category == ChangeCategory.ATTRIBUTE:
        try:
            relation = ChangeCategory(record.key)
        except ValueError:
            return category
        if relation in RELATION_KINDS:
            return relation
    return category


def attribute_key(prop_key: str) -> str:
    return prop_key.removesuffix(ID_SUFFIX)


def description_text(changes: list[ChangeRecord]) -> str | None:
    """Return the escaped new description from a list of changes, if any."""
    for record in changes:
        if record.category == ChangeCategory.ATTRIBUTE and record.key == "description":
            return escape(record.value) or None
    return None


class ChangeFieldRenderer:
    """Turn change records into rendered attachment fields."""

    def __init__(
        self,
        resolver: SettingsResolver,
        entities: EntityResolver,
        formatter: FieldFormatter,
        labels: Mapping[str, str] | None = None,
    ) -> None:
        self.resolver = resolver
        self.entities = entities
        self.formatter = formatter
        self.labels = DEFAULT_LABELS if labels is None else labels

    def label(self, label_key: str, fallback: str) -> str:
        """Return a translated label or a humanised fallback."""
        text = self.labels.get(label_key)
        if text:
            return text
        return fallback.replace("_", " ").capitalize()

    def render(self, record: ChangeRecord, project: ProjectNode | None) -> RenderedField | None:
        """Render one change, or return None when it must not be shown."""
        category = classify(record)
        if category in RELATION_KINDS:
            return self._render_relation(record, project, RELATION_KINDS[category])
        if category == ChangeCategory.CUSTOM_FIELD:
            draft = self._draft_custom_field(record)
        elif category == ChangeCategory.ATTACHMENT:
            draft = _Draft(
                title=self.label("label_attachment", "attachment"),
                key="attachment",
                value=record.raw_text,
            )
        else:
            draft = self._draft_attribute(record)
        return self._finish(record, draft)

    def render_fallback(self, record: ChangeRecord) -> RenderedField | None:
        """Render a change as a plain attribute without any lookups."""
        draft = self._draft_attribute(record)
        if draft.key in SUPPRESSED_KEYS:
            return None
        return self._field(draft.title, draft.key, draft.value, is_markup=False)

    def _render_relation(
        self,
        record: ChangeRecord,
        project: ProjectNode | None,
        relation: RelationKind,
    ) -> RenderedField | None:
        if not self.resolver.resolve_toggle(project, relation.toggle):
            return None
        value = self._entity_name(relation.entity_kind, record.raw_text)
        title = self.label(relation.label, record.key)
        return self._field(title, record.key, value, is_markup=False)

    def _draft_custom_field(self, record: ChangeRecord) -> _Draft:
        custom_field = self.entities.find_custom_field(record.key)
        if custom_field is None:
            logger.debug("Unknown custom field, rendering as attribute", field_id=record.key)
            return self._draft_attribute(record)
        value = record.raw_text
        if value:
            value = self.formatter.format_value(value, custom_field)
        return _Draft(
            title=custom_field.name,
            key=custom_field.name,
            value=value,
            field_format=custom_field.field_format,
        )

    def _draft_attribute(self, record: ChangeRecord) -> _Draft:
        key = attribute_key(record.key)
        label_key = LABEL_KEYS.get(key, f"field_{key}")
        return _Draft(title=self.label(label_key, key), key=key, value=record.raw_text)

    def _finish(self, record: ChangeRecord, draft: _Draft) -> RenderedField | None:
        key = draft.key
        value = draft.value
        compact = True
        is_markup = False
        if key in SUPPRESSED_KEYS:
            return None
        if key in WIDE_KEYS:
            compact = False
        elif key in ENTITY_KEYS:
            value = self._entity_name(ENTITY_KEYS[key], record.raw_text)
        elif key == "estimated_hours":
            hours = parse_hours(value)
            if hours is not None:
                value = format_hours(hours)
        elif key == "attachment":
            value, is_markup = self._attachment_value(record)
        elif key in ISSUE_LINK_KEYS:
            value, is_markup = self._linked_value(EntityKind.ISSUE, record.raw_text)
        if draft.field_format == "version":
            value = self._entity_name(EntityKind.VERSION, record.raw_text)
        return self._field(draft.title, key, value, is_markup=is_markup, compact=compact)

    def _field(
        self,
        title: str,
        key: str,
        value: str,
        *,
        is_markup: bool,
        compact: bool = True,
    ) -> RenderedField:
        if not is_markup:
            value = escape(value) if value else EMPTY_VALUE
        return RenderedField(title=title, value=value, key=key, compact=compact)

    def _entity_name(self, kind: EntityKind, entity_id: str) -> str:
        entity = self.entities.find_by_id(kind, entity_id) if entity_id else None
        return entity.name if entity is not None else entity_id

    def _attachment_value(self, record: ChangeRecord) -> tuple[str, bool]:
        attachment = self.entities.find_by_id(EntityKind.ATTACHMENT, record.key)
        if attachment is None:
            return record.raw_text or record.key, False
        return link_or_text(attachment.url, attachment.name), True

    def _linked_value(self, kind: EntityKind, entity_id: str) -> tuple[str, bool]:
        entity = self.entities.find_by_id(kind, entity_id) if entity_id else None
        if entity is None:
            return entity_id, False
        return link_or_text(entity.url, entity.name), True
