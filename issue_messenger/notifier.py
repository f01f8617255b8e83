"""Assemble webhook payloads for issue updates."""
from __future__ import annotations

from loguru import logger

from issue_messenger.config import Toggle
from issue_messenger.lookups import DeliveryQueue
from issue_messenger.markup import escape, link_or_text
from issue_messenger.mentions import mentions
from issue_messenger.models import (
    Delivery,
    IssueChangeEvent,
    MessageAttachment,
    Payload,
    ProjectNode,
    RenderedField,
)
from issue_messenger.rendering import ChangeFieldRenderer, description_text
from issue_messenger.resolver import SettingsResolver

EMOJI_PREFIX = ":"


class MissingDeliveryQueueError(RuntimeError):
    """Raised when enqueueing without a delivery queue."""

    def __init__(self) -> None:
        """Create a missing queue error."""
        super().__init__("NotificationBuilder has no delivery queue.")


class NotificationBuilder:
    """Build and enqueue one payload per resolved channel."""

    def __init__(
        self,
        resolver: SettingsResolver,
        renderer: ChangeFieldRenderer,
        queue: DeliveryQueue | None = None,
    ) -> None:
        self.resolver = resolver
        self.renderer = renderer
        self.queue = queue

    def speak(
        self,
        text: str,
        project: ProjectNode | None,
        attachment: MessageAttachment | None = None,
    ) -> list[Delivery]:
        """Return deliveries for ``text``, one per channel of ``project``.

        Nothing is returned when the project resolves no channels or no
        webhook URL; that is a normal outcome, not an error.
        """
        resolved = self.resolver.resolve(project)
        if not resolved.url or not resolved.channels:
            logger.debug(
                "No webhook URL or channels, skipping message",
                project=project.identifier if project else None,
            )
            return []
        template = Payload(text=text, username=resolved.username)
        if resolved.icon:
            if resolved.icon.startswith(EMOJI_PREFIX):
                template.icon_emoji = resolved.icon
            else:
                template.icon_url = resolved.icon
        if attachment is not None and not attachment.is_empty():
            template.attachments = [attachment]
        return [
            Delivery(
                url=resolved.url,
                payload=template.model_copy(update={"channel": channel}),
            )
            for channel in resolved.channels
        ]

    def render_fields(self, event: IssueChangeEvent) -> list[RenderedField]:
        """Render every visible change; a failing field falls back to plain text."""
        project = event.issue.project
        fields: list[RenderedField] = []
        for record in event.changes:
            try:
                field = self.renderer.render(record, project)
            except Exception:
                logger.exception(
                    "Failed to render change, using plain value",
                    category=record.category,
                    key=record.key,
                )
                field = self.renderer.render_fallback(record)
            if field is not None:
                fields.append(field)
        return fields

    def build_issue_update(self, event: IssueChangeEvent) -> list[Delivery]:
        """Return deliveries announcing an issue update."""
        issue = event.issue
        project = issue.project
        if not self.resolver.resolve_toggle(project, Toggle.POST_UPDATES):
            logger.debug("Updates disabled for project", project=project.identifier)
            return []
        if issue.is_private and not self.resolver.resolve_toggle(
            project,
            Toggle.POST_PRIVATE_ISSUES,
        ):
            logger.debug("Skipping private issue", issue=issue.id)
            return []
        notes = event.notes
        if event.private_notes and not self.resolver.resolve_toggle(
            project,
            Toggle.POST_PRIVATE_NOTES,
        ):
            notes = None

        text_parts = []
        if notes:
            text_parts.append(escape(notes))
        if self.resolver.resolve_toggle(project, Toggle.UPDATED_INCLUDE_DESCRIPTION):
            description = description_text(event.changes)
            if description:
                text_parts.append(description)
        attachment = MessageAttachment(
            text="\n\n".join(text_parts) or None,
            fields=self.render_fields(event),
        )
        if attachment.is_empty():
            logger.debug("Nothing visible changed", issue=issue.id)
            return []
        return self.speak(self.summary_text(event, notes), project, attachment)

    def summary_text(self, event: IssueChangeEvent, notes: str | None) -> str:
        """Return the headline for an issue update."""
        issue = event.issue
        project_link = link_or_text(issue.project.url, issue.project.name)
        issue_link = link_or_text(issue.url, f"#{issue.id}: {issue.subject}")
        text = f"[{project_link}] {escape(event.author)} updated {issue_link}"
        mention_line = mentions(self.resolver, issue.project, notes)
        if mention_line:
            text = f"{text} {mention_line}"
        return text

    def notify_issue_update(self, event: IssueChangeEvent) -> int:
        """Enqueue deliveries for an issue update and return how many."""
        if self.queue is None:
            raise MissingDeliveryQueueError
        deliveries = self.build_issue_update(event)
        for delivery in deliveries:
            self.queue.enqueue(delivery.url, delivery.payload)
        logger.info(
            "Enqueued issue update",
            issue=event.issue.id,
            deliveries=len(deliveries),
        )
        return len(deliveries)
