"""AdminAuditEntry aggregate: admin-only trail of stealth window changes."""

from enum import Enum

from protean.fields import DateTime, Identifier, String, Text

from safety_notifications.domain import safety_notifications


class StealthAction(Enum):
    ACTIVATED = "activated"
    EXTENDED = "extended"
    CLEARED = "cleared"
    EXPIRED = "expired"


@safety_notifications.aggregate
class AdminAuditEntry:
    family_id: Identifier(required=True)
    action: String(required=True, choices=StealthAction, max_length=20)
    actor: String(required=True, max_length=255)
    ticket_id: String(max_length=100)
    affected_user_ids: Text()  # JSON list
    window_end: DateTime()
    occurred_at: DateTime(required=True)
