"""Tests for best-effort notification delivery."""

import json
import logging

import httpx
from fastapi import BackgroundTasks
from fastapi.testclient import TestClient

from community_trust.services import notifications
from community_trust.services.notifications import (
    BackgroundNotifier,
    LoggingNotifier,
    NotificationEvent,
    NotificationKind,
    WebhookNotifier,
    dispatch,
)

EVENT = NotificationEvent(
    kind=NotificationKind.VOUCH_GRANTED,
    user_id="user-1",
    community_id="community-1",
    actor_id="admin-1",
    detail={"vouch_id": "vouch-1"},
)


def test_webhook_posts_event_payload() -> None:
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(202)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    WebhookNotifier("http://notify.test/events", client=client).notify(EVENT)

    [payload] = received
    assert payload["kind"] == "vouch_granted"
    assert payload["user_id"] == "user-1"
    assert payload["detail"] == {"vouch_id": "vouch-1"}
    assert "emitted_at" in payload


def test_dispatch_swallows_http_errors(caplog) -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    notifier = WebhookNotifier("http://notify.test/events", client=client)

    with caplog.at_level(logging.WARNING, logger="community_trust.services.notifications"):
        dispatch(notifier, EVENT)

    assert "delivery failed" in caplog.text


def test_dispatch_swallows_unexpected_errors(caplog) -> None:
    class Broken:
        def notify(self, event) -> None:
            raise ValueError("boom")

    with caplog.at_level(logging.WARNING, logger="community_trust.services.notifications"):
        dispatch(Broken(), EVENT)

    assert "vouch_granted" in caplog.text


def test_dispatch_without_notifier_is_a_no_op() -> None:
    dispatch(None, EVENT)


def test_background_notifier_defers_delivery(notifier) -> None:
    tasks = BackgroundTasks()

    BackgroundNotifier(tasks, notifier).notify(EVENT)

    assert notifier.events == []
    [task] = tasks.tasks
    task.func(*task.args, **task.kwargs)
    assert notifier.events == [EVENT]


def test_default_notifier_logs_without_webhook(monkeypatch) -> None:
    monkeypatch.setattr(notifications, "_default_notifier", None)
    monkeypatch.setattr(notifications.settings, "notify_webhook_url", None)

    assert isinstance(notifications.get_notifier(), LoggingNotifier)


def test_app_shutdown_closes_webhook_client(app, monkeypatch) -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(202)))
    webhook = WebhookNotifier("http://notify.test/events", client=client)
    monkeypatch.setattr(notifications, "_default_notifier", webhook)

    with TestClient(app):
        assert notifications.get_notifier() is webhook
        assert client.is_closed is False

    assert client.is_closed is True
    assert notifications._default_notifier is None
