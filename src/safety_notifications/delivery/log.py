"""Append-only delivery records.

``DeliveryLog`` holds one row per channel attempt. ``NotificationHistory``
holds one row per (notification, recipient) outcome and backs idempotency
checks such as "limit reached already sent today".
"""

import json
from datetime import datetime
from enum import Enum

from protean.fields import DateTime, Identifier, String, Text

from safety_notifications.categories import NotificationCategory
from safety_notifications.domain import safety_notifications
from safety_notifications.store import Store
from safety_notifications.utils.timeutil import as_utc


class DeliveryStatus(Enum):
    SENT = "sent"
    FAILED = "failed"
    FALLBACK = "fallback"
    DELAYED = "delayed"
    SKIPPED = "skipped"


class Outcome(Enum):
    SENT = "sent"
    FAILED = "failed"
    DELAYED = "delayed"
    SKIPPED = "skipped"


@safety_notifications.aggregate
class DeliveryLog:
    notification_id: Identifier(required=True)
    recipient_id: Identifier(required=True)
    family_id: Identifier()
    category: String(required=True, max_length=50)
    channel: String(required=True, max_length=10)
    status: String(required=True, choices=DeliveryStatus, max_length=10)
    message_id: String(max_length=255)
    failure_reason: String(max_length=500)
    attempted_at: DateTime(required=True)


@safety_notifications.aggregate
class NotificationHistory:
    notification_id: Identifier(required=True)
    recipient_id: Identifier(required=True)
    family_id: Identifier()
    child_id: Identifier()
    category: String(required=True, max_length=50)
    severity: String(max_length=10)
    outcome: String(required=True, choices=Outcome, max_length=10)
    reason: String(max_length=50)
    title: String(max_length=255)
    channels: Text()  # JSON list of channels that succeeded
    created_at: DateTime(required=True)


def record_history(
    store: Store,
    notification_id,
    recipient_id,
    category: NotificationCategory,
    outcome: Outcome,
    now: datetime,
    reason=None,
    family_id=None,
    child_id=None,
    severity=None,
    title=None,
    channels=None,
) -> NotificationHistory:
    entry = NotificationHistory(
        notification_id=str(notification_id),
        recipient_id=str(recipient_id),
        family_id=str(family_id) if family_id else None,
        child_id=str(child_id) if child_id else None,
        category=category.value,
        severity=severity.value if severity is not None else None,
        outcome=outcome.value,
        reason=reason.value if reason is not None else None,
        title=title,
        channels=json.dumps([c.value for c in channels or []]),
        created_at=now,
    )
    store.add(entry)
    return entry


def already_sent_today(
    store: Store,
    recipient_id,
    category: NotificationCategory,
    now: datetime,
    child_id=None,
) -> bool:
    """True if this recipient already got a ``sent`` notification of this category today (UTC)."""
    today = now.date()
    for entry in store.filter(NotificationHistory, recipient_id=str(recipient_id), category=category.value):
        if entry.outcome != Outcome.SENT.value:
            continue
        if child_id is not None and str(entry.child_id) != str(child_id):
            continue
        if as_utc(entry.created_at).date() == today:
            return True
    return False
