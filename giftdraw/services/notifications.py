from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from flask import current_app

from ..models import Group, Participant
from .assignments import load_assignments


logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class NotificationError(RuntimeError):
    pass


class NoAssignments(NotificationError):
    pass


class DeliveryError(NotificationError):
    """Raised by a backend when one message could not be delivered."""


@dataclass(frozen=True)
class Notification:
    giver_name: str
    giver_contact: str
    receiver_name: str
    receiver_wishlist: str | None
    group_name: str
    budget_limit: float | None
    custom_message: str | None
    result_url: str


@dataclass
class DispatchReport:
    total: int
    sent: int = 0
    failed: list[dict] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Sent {self.sent} of {self.total} notifications."

    def to_dict(self) -> dict:
        return {"sent": self.sent, "total": self.total, "failed": self.failed, "message": self.message}


class NotificationBackend(ABC):
    @abstractmethod
    def send(self, notification: Notification) -> None:
        """Deliver one notification; raise DeliveryError on failure."""


class LoggingBackend(NotificationBackend):
    """Default backend: records the dispatch, receivers only at DEBUG."""

    def send(self, notification: Notification) -> None:
        logger.info(
            "Notifying %s <%s> for group %r",
            notification.giver_name, notification.giver_contact, notification.group_name,
        )
        logger.debug("%s gives to %s", notification.giver_name, notification.receiver_name)


BACKENDS = {
    "logging": LoggingBackend,
}


def get_backend() -> NotificationBackend:
    name = current_app.config.get("NOTIFIER_BACKEND", "logging")
    try:
        return BACKENDS[name]()
    except KeyError as e:
        raise NotificationError(f"Unknown notifier backend: {name!r}") from e


def is_email(contact: str | None) -> bool:
    return bool(contact) and EMAIL_RE.match(contact.strip()) is not None


def result_url(group: Group, giver: Participant) -> str:
    base = (current_app.config.get("RESULT_BASE_URL") or "").rstrip("/")
    return f"{base}/groups/{group.id}/participants/{giver.id}/assignment"


def build_notifications(group: Group, pairs: list[tuple[Participant, Participant]]) -> list[Notification]:
    return [
        Notification(
            giver_name=giver.name,
            giver_contact=giver.contact,
            receiver_name=receiver.name,
            receiver_wishlist=receiver.wishlist,
            group_name=group.name,
            budget_limit=group.budget_limit,
            custom_message=group.custom_message,
            result_url=result_url(group, giver),
        )
        for giver, receiver in pairs
    ]


def send_results(group: Group, backend: NotificationBackend | None = None) -> DispatchReport:
    """
    Send every giver their receiver. Givers without an email contact are
    skipped and a failing delivery does not stop the rest; both end up in
    the report's `failed` list.
    """
    pairs = load_assignments(group)
    if not pairs:
        raise NoAssignments("No assignments found. Draw names first.")

    backend = backend or get_backend()
    report = DispatchReport(total=len(pairs))

    for notification in build_notifications(group, pairs):
        if not is_email(notification.giver_contact):
            logger.warning("Skipping %s: contact is not an email", notification.giver_name)
            report.failed.append({"name": notification.giver_name, "reason": "not an email"})
            continue
        try:
            backend.send(notification)
        except DeliveryError as e:
            logger.warning("Failed to notify %s: %s", notification.giver_name, e)
            report.failed.append({"name": notification.giver_name, "reason": str(e) or "failed to send"})
            continue
        report.sent += 1

    logger.info("Group %s: %s", group.id, report.message)
    return report
