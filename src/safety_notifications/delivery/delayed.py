"""DelayedNotification aggregate + queue processor: quiet-hours deferrals.

An immediate notification that lands inside a recipient's quiet hours is
parked here with ``deliver_at`` set to the end of the window. The
scheduler drains due items; each is re-checked against the stealth window
before delivery since it may have opened in the meantime.
"""

import json
from datetime import datetime
from enum import Enum

import structlog
from protean.fields import DateTime, Identifier, String, Text

from safety_notifications.categories import NotificationCategory, Priority, Severity
from safety_notifications.delivery.log import Outcome, record_history
from safety_notifications.delivery.orchestrator import DeliveryOrchestrator, DeliveryRequest
from safety_notifications.domain import safety_notifications
from safety_notifications.stealth.window import StealthWindowManager
from safety_notifications.store import Store
from safety_notifications.utils.timeutil import as_utc, utc_now

logger = structlog.get_logger(__name__)


class DelayedStatus(Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


@safety_notifications.event(part_of="DelayedNotification")
class NotificationDelayed:
    """A notification was held back until the recipient's quiet hours end."""

    __version__ = 1

    delayed_id: Identifier(required=True)
    recipient_id: Identifier(required=True)
    category: String(required=True, max_length=50)
    deliver_at: DateTime(required=True)


@safety_notifications.aggregate
class DelayedNotification:
    notification_id: Identifier(required=True)
    recipient_id: Identifier(required=True)
    family_id: Identifier()
    child_id: Identifier()
    category: String(required=True, max_length=50)
    severity: String(required=True, max_length=10)
    priority: String(max_length=10, default=Priority.NORMAL.value)
    title: String(max_length=255, sanitize=False)
    body: Text(sanitize=False)
    data: Text(sanitize=False)  # JSON
    deliver_at: DateTime(required=True)
    status: String(choices=DelayedStatus, default=DelayedStatus.PENDING.value)
    created_at: DateTime()
    processed_at: DateTime()

    @classmethod
    def schedule(cls, request: DeliveryRequest, deliver_at: datetime, now: datetime, child_id=None):
        delayed = cls(
            notification_id=request.notification_id,
            recipient_id=request.recipient_id,
            family_id=request.family_id,
            child_id=child_id,
            category=request.category.value,
            severity=request.severity.value,
            priority=request.priority.value,
            title=request.title,
            body=request.body,
            data=json.dumps(request.data, default=str),
            deliver_at=deliver_at,
            created_at=now,
        )
        delayed.raise_(
            NotificationDelayed(
                delayed_id=str(delayed.id),
                recipient_id=str(request.recipient_id),
                category=request.category.value,
                deliver_at=deliver_at,
            )
        )
        return delayed

    def is_due(self, now: datetime) -> bool:
        return self.status == DelayedStatus.PENDING.value and as_utc(self.deliver_at) <= now

    def to_request(self) -> DeliveryRequest:
        return DeliveryRequest(
            notification_id=str(self.notification_id),
            recipient_id=str(self.recipient_id),
            family_id=str(self.family_id) if self.family_id else None,
            category=NotificationCategory(self.category),
            severity=Severity(self.severity),
            priority=Priority(self.priority or Priority.NORMAL.value),
            title=self.title or "",
            body=self.body or "",
            data=json.loads(self.data) if self.data else {},
        )

    def mark(self, status: DelayedStatus, now: datetime):
        self.status = status.value
        self.processed_at = now


class DelayedQueueProcessor:
    """Delivers notifications parked for quiet hours once they come due."""

    def __init__(self, store: Store, orchestrator: DeliveryOrchestrator, stealth: StealthWindowManager):
        self.store = store
        self.orchestrator = orchestrator
        self.stealth = stealth

    def process(self, now: datetime | None = None) -> dict:
        """Deliver every due item once. Items are isolated from each other's failures."""
        now = now or utc_now()
        summary = {"delivered": 0, "failed": 0, "cancelled": 0}

        pending = self.store.filter(DelayedNotification, status=DelayedStatus.PENDING.value)
        for delayed in sorted(pending, key=lambda d: as_utc(d.deliver_at)):
            if not delayed.is_due(now):
                continue
            try:
                status = self._deliver(delayed, now)
            except Exception as exc:
                logger.error("Delayed notification failed", delayed_id=str(delayed.id), error=str(exc))
                status = DelayedStatus.FAILED
            delayed.mark(status, now)
            self.store.add(delayed)
            summary[status.value] += 1

        logger.info("Delayed queue processed", as_of=str(now), **summary)
        return summary

    def _deliver(self, delayed: DelayedNotification, now: datetime) -> DelayedStatus:
        request = delayed.to_request()
        if request.family_id and self.stealth.should_suppress(
            request.family_id, request.category, request.recipient_id, request.data, now
        ):
            return DelayedStatus.CANCELLED

        result = self.orchestrator.deliver(request, now)
        record_history(
            self.store,
            request.notification_id,
            request.recipient_id,
            request.category,
            Outcome.SENT if result.sent else Outcome.FAILED,
            now,
            reason=result.reason,
            family_id=request.family_id,
            child_id=delayed.child_id,
            severity=request.severity,
            title=request.title,
            channels=result.delivered_channels,
        )
        return DelayedStatus.DELIVERED if result.sent else DelayedStatus.FAILED
