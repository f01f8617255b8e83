"""Collaborator interfaces consumed by the renderer and notifier.

The host application owns storage, custom field formatting and delivery.
These protocols are the only surface the messenger core talks to; the
in-memory implementations back the CLI and the tests.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from issue_messenger.models import CustomField, Entity, EntityKind, Payload

BOOL_LABELS = {"1": "Yes", "0": "No"}


@runtime_checkable
class EntityResolver(Protocol):
    """Look up entities referenced by change records."""

    def find_by_id(self, kind: EntityKind, entity_id: str) -> Entity | None:
        """Return the entity or None when it does not exist."""

    def find_custom_field(self, field_id: str) -> CustomField | None:
        """Return custom field metadata or None."""


@runtime_checkable
class FieldFormatter(Protocol):
    """Format custom field values for display."""

    def format_value(self, raw: str, custom_field: CustomField) -> str:
        """Return the display text for a raw custom field value."""


@runtime_checkable
class DeliveryQueue(Protocol):
    """Accept payloads for asynchronous delivery."""

    def enqueue(self, url: str, payload: Payload) -> None:
        """Schedule a payload for delivery to a webhook URL."""


class InMemoryEntityResolver:
    """Entity lookups backed by dictionaries."""

    def __init__(
        self,
        entities: dict[EntityKind, list[Entity]] | None = None,
        custom_fields: list[CustomField] | None = None,
    ) -> None:
        self._entities: dict[EntityKind, dict[str, Entity]] = {
            kind: {entity.id: entity for entity in items}
            for kind, items in (entities or {}).items()
        }
        self._custom_fields = {field.id: field for field in custom_fields or []}

    def find_by_id(self, kind: EntityKind, entity_id: str) -> Entity | None:
        return self._entities.get(kind, {}).get(entity_id)

    def find_custom_field(self, field_id: str) -> CustomField | None:
        return self._custom_fields.get(field_id)


class DefaultFieldFormatter:
    """Plain-text formatting for custom field values."""

    def format_value(self, raw: str, custom_field: CustomField) -> str:
        if custom_field.field_format == "bool":
            return BOOL_LABELS.get(raw, raw)
        return raw
