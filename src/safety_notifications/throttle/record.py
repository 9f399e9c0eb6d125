"""ThrottleRecord aggregate: last notification sent for one logical signal."""

from enum import Enum

from protean.fields import DateTime, Identifier, String

from safety_notifications.domain import safety_notifications


class ThrottleSignal(Enum):
    STATUS_TRANSITION = "status_transition"
    LOGIN_FINGERPRINT = "login_fingerprint"
    SYNC_THRESHOLD = "sync_threshold"
    PERMISSION_REVOKED = "permission_revoked"


@safety_notifications.aggregate
class ThrottleRecord:
    """Keyed by (recipient, signal kind, subject); overwritten, never appended.

    ``last_key`` holds the signal-specific discriminator: the transition
    label, the device fingerprint or the threshold crossed.
    """

    recipient_id: Identifier(required=True)
    signal_kind: String(required=True, choices=ThrottleSignal, max_length=30)
    subject_id: String(max_length=255, default="", sanitize=False)
    last_key: String(max_length=255, sanitize=False)
    last_sent_at: DateTime(required=True)

    def touch(self, last_key, sent_at):
        self.last_key = str(last_key) if last_key is not None else None
        self.last_sent_at = sent_at
