"""Tests for payload assembly and fan-out."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from issue_messenger.config import Settings, Toggle
from issue_messenger.models import (
    Issue,
    IssueChangeEvent,
    MessageAttachment,
    ProjectNode,
    TriState,
)
from issue_messenger.notifier import MissingDeliveryQueueError, NotificationBuilder
from tests.factories import attr, make_project, make_renderer, make_settings

HOOK_URL = "https://hooks.example.com/services/T000/B000/XXX"


def _builder(settings: Settings, queue: MagicMock | None = None) -> NotificationBuilder:
    renderer = make_renderer(settings)
    return NotificationBuilder(renderer.resolver, renderer, queue)


def _event(project: ProjectNode, **values: object) -> IssueChangeEvent:
    issue = Issue(
        id="42",
        subject="Login <fails>",
        url="https://tracker.example.com/issues/42",
        project=project,
        is_private=bool(values.pop("is_private", False)),
    )
    values.setdefault("author", "Grace & co")
    values.setdefault("changes", [attr("status_id", "2")])
    return IssueChangeEvent(issue=issue, **values)


class TestSpeak:
    def test_one_delivery_per_channel(self):
        settings = make_settings(messenger_url=HOOK_URL, messenger_channel="ops, dev")
        deliveries = _builder(settings).speak("hello", make_project("p"))
        assert [d.payload.channel for d in deliveries] == ["ops", "dev"]
        assert {d.url for d in deliveries} == {HOOK_URL}
        first, second = (d.payload.to_json() for d in deliveries)
        first.pop("channel")
        second.pop("channel")
        assert first == second

    def test_no_channels_means_no_deliveries(self):
        settings = make_settings(messenger_url=HOOK_URL)
        assert _builder(settings).speak("hello", make_project("p")) == []

    def test_no_url_means_no_deliveries(self):
        settings = make_settings(messenger_channel="ops")
        assert _builder(settings).speak("hello", make_project("p")) == []

    def test_emoji_icon(self):
        settings = make_settings(
            messenger_url=HOOK_URL,
            messenger_channel="ops",
            messenger_icon=":robot_face:",
            messenger_username="tracker",
        )
        payload = _builder(settings).speak("hi", make_project("p"))[0].payload.to_json()
        assert payload["icon_emoji"] == ":robot_face:"
        assert "icon_url" not in payload
        assert payload["username"] == "tracker"
        assert payload["link_names"] is True
        assert payload["attachments"] == []

    def test_image_icon(self):
        settings = make_settings(messenger_url=HOOK_URL, messenger_channel="ops")
        project = make_project("p", icon="https://img.example.com/bot.png")
        payload = _builder(settings).speak("hi", project)[0].payload.to_json()
        assert payload["icon_url"] == "https://img.example.com/bot.png"
        assert "icon_emoji" not in payload
        assert "username" not in payload

    def test_empty_attachment_is_omitted(self):
        settings = make_settings(messenger_url=HOOK_URL, messenger_channel="ops")
        deliveries = _builder(settings).speak("hi", make_project("p"), MessageAttachment())
        assert deliveries[0].payload.attachments == []


class TestBuildIssueUpdate:
    def test_payload_structure(self):
        settings = make_settings(messenger_url=HOOK_URL, messenger_channel="ops")
        project = make_project("web", default_mentions="@team")
        event = _event(project, notes="Fixed in <b> @dev")
        deliveries = _builder(settings).build_issue_update(event)
        assert len(deliveries) == 1
        payload = deliveries[0].payload.to_json()
        assert payload["channel"] == "ops"
        assert payload["text"] == (
            "[<https://tracker.example.com/projects/web|Web>] Grace &amp; co updated "
            "<https://tracker.example.com/issues/42|#42: Login &lt;fails&gt;> "
            "To: @team, @dev"
        )
        attachment = payload["attachments"][0]
        assert attachment["text"] == "Fixed in &lt;b&gt; @dev"
        assert attachment["fields"] == [
            {"title": "Status", "value": "In Progress", "key": "status", "short": True},
        ]

    def test_suppressed_fields_are_skipped(self):
        settings = make_settings(
            messenger_url=HOOK_URL,
            messenger_channel="ops",
            updated_include_description=False,
        )
        event = _event(
            make_project("p"),
            changes=[attr("description", "long"), attr("db_relation", "5"), attr("subject", "s")],
        )
        fields = _builder(settings).build_issue_update(event)[0].payload.attachments[0].fields
        assert [field.key for field in fields] == ["subject"]

    def test_description_included_when_enabled(self):
        settings = make_settings(messenger_url=HOOK_URL, messenger_channel="ops")
        event = _event(make_project("p"), changes=[attr("description", "new & shiny")])
        attachment = _builder(settings).build_issue_update(event)[0].payload.attachments[0]
        assert attachment.text == "new &amp; shiny"
        assert attachment.fields == []

    def test_nothing_visible_means_no_deliveries(self):
        settings = make_settings(
            messenger_url=HOOK_URL,
            messenger_channel="ops",
            updated_include_description=False,
        )
        event = _event(make_project("p"), changes=[attr("description", "x")])
        assert _builder(settings).build_issue_update(event) == []

    def test_updates_disabled_by_project(self):
        settings = make_settings(messenger_url=HOOK_URL, messenger_channel="ops")
        project = make_project("p", toggles={Toggle.POST_UPDATES: TriState.FORCE_OFF})
        assert _builder(settings).build_issue_update(_event(project)) == []

    def test_private_issue_needs_toggle(self):
        settings = make_settings(messenger_url=HOOK_URL, messenger_channel="ops")
        hidden = make_project("hidden")
        shown = make_project("shown", toggles={Toggle.POST_PRIVATE_ISSUES: TriState.FORCE_ON})
        builder = _builder(settings)
        assert builder.build_issue_update(_event(hidden, is_private=True)) == []
        assert len(builder.build_issue_update(_event(shown, is_private=True))) == 1

    def test_private_notes_are_dropped(self):
        settings = make_settings(messenger_url=HOOK_URL, messenger_channel="ops")
        event = _event(make_project("p"), notes="secret @spy", private_notes=True)
        payload = _builder(settings).build_issue_update(event)[0].payload
        assert payload.attachments[0].text is None
        assert "@spy" not in payload.text

    def test_failing_field_falls_back_without_losing_siblings(self):
        settings = make_settings(messenger_url=HOOK_URL, messenger_channel="ops")
        builder = _builder(settings)
        entities = MagicMock()
        entities.find_by_id.side_effect = [ConnectionError("db down"), None]
        builder.renderer.entities = entities
        event = _event(
            make_project("p"),
            changes=[attr("status_id", "2"), attr("tracker_id", "1"), attr("due_date", "2026-05-01")],
        )
        fields = builder.build_issue_update(event)[0].payload.attachments[0].fields
        assert [(f.key, f.value) for f in fields] == [
            ("status", "2"),
            ("tracker", "1"),
            ("due_date", "2026-05-01"),
        ]


class TestNotifyIssueUpdate:
    def test_enqueues_each_delivery(self):
        queue = MagicMock()
        settings = make_settings(messenger_url=HOOK_URL, messenger_channel="a,b,c")
        count = _builder(settings, queue).notify_issue_update(_event(make_project("p")))
        assert count == 3
        assert queue.enqueue.call_count == 3
        channels = [call.args[1].channel for call in queue.enqueue.call_args_list]
        assert channels == ["a", "b", "c"]
        assert {call.args[0] for call in queue.enqueue.call_args_list} == {HOOK_URL}

    def test_nothing_enqueued_without_channels(self):
        queue = MagicMock()
        settings = make_settings(messenger_url=HOOK_URL)
        assert _builder(settings, queue).notify_issue_update(_event(make_project("p"))) == 0
        queue.enqueue.assert_not_called()

    def test_requires_queue(self):
        with pytest.raises(MissingDeliveryQueueError):
            _builder(make_settings()).notify_issue_update(_event(make_project("p")))
