"""Registration change notifications.

Components that care about registrations (confirmation emails, caches, dashboards) subscribe here
instead of listening to model signals. Notifications are delivered after the surrounding transaction
commits, so subscribers never observe a change that was rolled back.
"""

import typing as t
from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

import structlog
from django.db import transaction

logger = structlog.get_logger(__name__)


class ChangeKind(StrEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    DELETED = "deleted"


@dataclass(frozen=True)
class RegistrationChange:
    kind: ChangeKind
    registration_id: UUID
    event_id: UUID
    user_id: UUID


Subscriber = t.Callable[[RegistrationChange], None]


class RegistrationNotifier:
    def __init__(self) -> None:
        """Start with no subscribers."""
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        """Register a subscriber. Returns it, so this can be used as a decorator."""
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove a subscriber if present."""
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    @property
    def subscribers(self) -> tuple[Subscriber, ...]:
        """Current subscribers, in subscription order."""
        return tuple(self._subscribers)

    def notify(self, change: RegistrationChange) -> None:
        """Deliver ``change`` to every subscriber once the current transaction commits."""
        transaction.on_commit(lambda: self._deliver(change))

    def _deliver(self, change: RegistrationChange) -> None:
        for subscriber in self.subscribers:
            try:
                subscriber(change)
            except Exception:
                # The change is already committed; remaining subscribers still run.
                logger.exception(
                    "registration_subscriber_failed",
                    subscriber=getattr(subscriber, "__qualname__", repr(subscriber)),
                    kind=str(change.kind),
                    registration_id=str(change.registration_id),
                )


registration_notifier = RegistrationNotifier()
