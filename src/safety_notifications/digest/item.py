"""DigestQueueItem aggregate: one routed low/medium event awaiting a digest.

Items are never deleted. The drain flags them processed, whatever the
outcome of the send.
"""

from datetime import datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Identifier, String

from safety_notifications.domain import safety_notifications


class DigestType(Enum):
    HOURLY = "hourly"
    DAILY = "daily"


@safety_notifications.event(part_of="DigestQueueItem")
class DigestItemQueued:
    __version__ = 1

    item_id: Identifier(required=True)
    recipient_id: Identifier(required=True)
    digest_type: String(required=True, max_length=10)
    queued_at: DateTime(required=True)


@safety_notifications.aggregate
class DigestQueueItem:
    recipient_id: Identifier(required=True)
    family_id: Identifier()
    source_event_id: String(max_length=255)
    child_id: Identifier()
    child_name: String(max_length=100, sanitize=False)
    severity: String(required=True, max_length=10)
    category: String(required=True, max_length=50)
    digest_type: String(required=True, choices=DigestType, max_length=10)
    queued_at: DateTime(required=True)
    processed: Boolean(default=False)
    processed_at: DateTime()

    @classmethod
    def queue(cls, recipient_id, digest_type: DigestType, severity, category, queued_at: datetime, **details):
        item = cls(
            recipient_id=recipient_id,
            digest_type=digest_type.value,
            severity=severity.value,
            category=category.value,
            queued_at=queued_at,
            processed=False,
            **details,
        )
        item.raise_(
            DigestItemQueued(
                item_id=str(item.id),
                recipient_id=str(recipient_id),
                digest_type=digest_type.value,
                queued_at=queued_at,
            )
        )
        return item

    def mark_processed(self, now: datetime):
        self.processed = True
        self.processed_at = now
