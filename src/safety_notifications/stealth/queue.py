"""StealthQueueEntry aggregate: sealed capture of a suppressed notification.

Entries exist for audit and forensics only. Nothing in this package exposes
them to family members, and they are purged once ``expires_at`` passes.
"""

from protean.fields import DateTime, Identifier, String, Text

from safety_notifications.domain import safety_notifications


@safety_notifications.aggregate
class StealthQueueEntry:
    family_id: Identifier(required=True)
    target_user_id: Identifier(required=True)
    notification_type: String(required=True, max_length=50)
    payload: Text(sanitize=False)  # JSON
    ticket_id: String(max_length=100)
    captured_at: DateTime(required=True)
    expires_at: DateTime(required=True)
