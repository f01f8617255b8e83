"""Replay an issue update from a JSON file and post it to chat."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from issue_messenger.config import Settings, get_settings
from issue_messenger.delivery import WebhookDispatcher
from issue_messenger.lookups import DefaultFieldFormatter, InMemoryEntityResolver
from issue_messenger.models import (
    ChangeRecord,
    CustomField,
    Delivery,
    Entity,
    EntityKind,
    Issue,
    IssueChangeEvent,
    ProjectNode,
    ProjectOverride,
)
from issue_messenger.notifier import NotificationBuilder
from issue_messenger.rendering import ChangeFieldRenderer
from issue_messenger.resolver import SettingsResolver

load_dotenv()


class ProjectTreeError(RuntimeError):
    """Raised when the project list does not form a tree."""

    def __init__(self, identifier: str, reason: str) -> None:
        """Create a project tree error."""
        super().__init__(f"Project {identifier!r}: {reason}")


class ProjectRecord(BaseModel):
    """A project as stored in a replay file; parents are referenced by id."""

    identifier: str
    name: str
    url: str = ""
    parent: str | None = None
    override: ProjectOverride | None = None


class IssueRecord(BaseModel):
    id: str
    subject: str
    url: str = ""
    project: str
    is_private: bool = False


class EventRecord(BaseModel):
    issue: IssueRecord
    author: str
    notes: str | None = None
    private_notes: bool = False
    changes: list[ChangeRecord] = Field(default_factory=list)


class ReplayFile(BaseModel):
    """Contents of a replay file."""

    projects: list[ProjectRecord]
    entities: dict[EntityKind, list[Entity]] = Field(default_factory=dict)
    custom_fields: list[CustomField] = Field(default_factory=list)
    event: EventRecord


def build_project_tree(records: list[ProjectRecord]) -> dict[str, ProjectNode]:
    """Link project records into nodes keyed by identifier."""
    by_id = {record.identifier: record for record in records}
    nodes: dict[str, ProjectNode] = {}

    def build(identifier: str, path: tuple[str, ...]) -> ProjectNode:
        if identifier in nodes:
            return nodes[identifier]
        if identifier in path:
            raise ProjectTreeError(identifier, "parent cycle")
        record = by_id.get(identifier)
        if record is None:
            raise ProjectTreeError(identifier, "unknown project")
        parent = build(record.parent, (*path, identifier)) if record.parent else None
        nodes[identifier] = ProjectNode(
            identifier=record.identifier,
            name=record.name,
            url=record.url,
            parent=parent,
            override=record.override,
        )
        return nodes[identifier]

    for record in records:
        build(record.identifier, ())
    return nodes


def load_replay(path: Path) -> ReplayFile:
    """Read and validate a replay file."""
    return ReplayFile.model_validate_json(path.read_text(encoding="utf-8"))


def build_event(replay: ReplayFile) -> IssueChangeEvent:
    """Resolve project references and return the change event."""
    projects = build_project_tree(replay.projects)
    record = replay.event
    project = projects.get(record.issue.project)
    if project is None:
        raise ProjectTreeError(record.issue.project, "unknown project")
    issue = Issue(
        id=record.issue.id,
        subject=record.issue.subject,
        url=record.issue.url,
        project=project,
        is_private=record.issue.is_private,
    )
    return IssueChangeEvent(
        issue=issue,
        author=record.author,
        notes=record.notes,
        private_notes=record.private_notes,
        changes=record.changes,
    )


def make_builder(
    settings: Settings,
    replay: ReplayFile,
    dispatcher: WebhookDispatcher | None = None,
) -> NotificationBuilder:
    """Wire the resolver, renderer and builder for a replay file."""
    resolver = SettingsResolver(settings)
    entities = InMemoryEntityResolver(replay.entities, replay.custom_fields)
    renderer = ChangeFieldRenderer(resolver, entities, DefaultFieldFormatter())
    return NotificationBuilder(resolver, renderer, dispatcher)


def print_deliveries(deliveries: list[Delivery]) -> None:
    logger.info("--- DRY RUN OUTPUT ---")
    for delivery in deliveries:
        logger.opt(raw=True).info(
            "{message}\n",
            message=json.dumps(delivery.payload.to_json(), indent=2),
        )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Issue Messenger replay")
    parser.add_argument("event_file", type=Path, help="JSON replay file")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print payloads instead of posting them",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace, settings: Settings) -> int:
    """Build the notification for a replay file and send or print it."""
    try:
        replay = load_replay(args.event_file)
        event = build_event(replay)
    except (OSError, ValidationError, ProjectTreeError) as exc:
        logger.error("Cannot load replay file {path}: {error}", path=args.event_file, error=exc)
        return 1

    if args.dry_run:
        deliveries = make_builder(settings, replay).build_issue_update(event)
        logger.info("Built deliveries", count=len(deliveries))
        print_deliveries(deliveries)
        return 0

    dispatcher = WebhookDispatcher()
    try:
        make_builder(settings, replay, dispatcher).notify_issue_update(event)
    finally:
        dispatcher.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the replay CLI."""
    logger.info("Starting messenger replay")
    return run(parse_args(argv), get_settings())


if __name__ == "__main__":
    sys.exit(main())
