# src/community_trust/services/notifications.py
"""Best-effort notifications emitted after engine transitions commit.

Delivery never feeds back into the engine: a failing notifier is logged and
the transition's own result stands.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

import httpx
from fastapi import BackgroundTasks

from community_trust.core.settings import settings
from community_trust.db.time import utcnow

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    """Transitions that users are told about."""

    MEMBER_APPROVED = "member_approved"
    MEMBER_REJECTED = "member_rejected"
    ROLE_PROMOTED = "role_promoted"
    ROLE_DEMOTED = "role_demoted"
    MEMBER_REMOVED = "member_removed"
    VOUCH_GRANTED = "vouch_granted"
    VOUCH_REVOKED = "vouch_revoked"
    VOUCH_OFFERED = "vouch_offered"
    VOUCH_OFFER_ACCEPTED = "vouch_offer_accepted"


@dataclass(frozen=True)
class NotificationEvent:
    """A committed transition addressed to one user."""

    kind: NotificationKind
    user_id: str
    community_id: str
    actor_id: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["kind"] = self.kind.value
        payload["emitted_at"] = utcnow().isoformat()
        return payload


class Notifier(Protocol):
    """Anything that can deliver a notification event."""

    def notify(self, event: NotificationEvent) -> None: ...


class LoggingNotifier:
    """Notifier that only records events in the application log."""

    def notify(self, event: NotificationEvent) -> None:
        logger.info(
            "Notification %s for user %s in community %s",
            event.kind.value,
            event.user_id,
            event.community_id,
        )


class WebhookNotifier:
    """POST events as JSON to an external notification service."""

    def __init__(self, url: str, *, timeout: float | None = None, client: httpx.Client | None = None) -> None:
        self.url = url
        self._client = client or httpx.Client(
            timeout=settings.notify_timeout_seconds if timeout is None else timeout
        )

    def notify(self, event: NotificationEvent) -> None:
        response = self._client.post(self.url, json=event.to_payload())
        response.raise_for_status()

    def close(self) -> None:
        self._client.close()


class BackgroundNotifier:
    """Defer delivery until the HTTP response has been sent."""

    def __init__(self, tasks: BackgroundTasks, delegate: Notifier) -> None:
        self.tasks = tasks
        self.delegate = delegate

    def notify(self, event: NotificationEvent) -> None:
        self.tasks.add_task(dispatch, self.delegate, event)


def dispatch(notifier: Notifier | None, event: NotificationEvent) -> None:
    """Deliver ``event`` without letting any failure escape."""
    if notifier is None:
        return
    try:
        notifier.notify(event)
    except httpx.HTTPError as exc:
        logger.warning("Notification %s delivery failed: %s", event.kind.value, exc)
    except Exception:
        logger.warning("Notifier raised while sending %s", event.kind.value, exc_info=True)


_default_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Return the process-wide notifier configured from settings."""
    global _default_notifier
    if _default_notifier is None:
        if settings.notify_webhook_url:
            _default_notifier = WebhookNotifier(settings.notify_webhook_url)
        else:
            _default_notifier = LoggingNotifier()
    return _default_notifier


def close_notifier() -> None:
    """Release the process-wide notifier's HTTP client, if one was opened."""
    global _default_notifier
    if isinstance(_default_notifier, WebhookNotifier):
        _default_notifier.close()
    _default_notifier = None
