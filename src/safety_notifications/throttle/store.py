"""Throttle/dedup checks and their bookkeeping.

Checks run before any channel attempt; records are written only after at
least one channel succeeded, so a failed send never blocks a retry. Reads
that fail count as "not throttled": the worst case is one extra
notification, never a missed one.
"""

from datetime import datetime, timedelta
from enum import Enum

import structlog

from safety_notifications.store import Store
from safety_notifications.throttle.record import ThrottleRecord, ThrottleSignal
from safety_notifications.utils.timeutil import as_utc

logger = structlog.get_logger(__name__)

STATUS_TRANSITION_WINDOW = timedelta(hours=1)
FINGERPRINT_DEDUP_WINDOW = timedelta(minutes=5)
PERMISSION_REVOKED_COOLDOWN = timedelta(hours=1)


class ChildStatus(Enum):
    GOOD = "good"
    ATTENTION = "attention"
    ACTION = "action"


class ThrottleStore:
    """Last-sent bookkeeping per recipient and signal. Records are overwritten, last write wins."""

    def __init__(self, store: Store):
        self.store = store

    def _find(self, recipient_id, signal: ThrottleSignal, subject_id="") -> ThrottleRecord | None:
        records = self.store.filter(ThrottleRecord, recipient_id=str(recipient_id), signal_kind=signal.value)
        for record in records:
            if (record.subject_id or "") == str(subject_id or ""):
                return record
        return None

    def _read(self, recipient_id, signal: ThrottleSignal, subject_id="") -> ThrottleRecord | None:
        try:
            return self._find(recipient_id, signal, subject_id)
        except Exception as exc:
            logger.warning(
                "Throttle state unreadable, not throttling",
                recipient_id=str(recipient_id),
                signal=signal.value,
                error=str(exc),
            )
            return None

    def _record(self, recipient_id, signal: ThrottleSignal, subject_id, last_key, now: datetime) -> ThrottleRecord:
        record = self._find(recipient_id, signal, subject_id)
        if record is None:
            record = ThrottleRecord(
                recipient_id=str(recipient_id),
                signal_kind=signal.value,
                subject_id=str(subject_id or ""),
                last_sent_at=now,
            )
        record.touch(last_key, now)
        self.store.add(record)
        return record

    @staticmethod
    def _within(record: ThrottleRecord, window: timedelta, now: datetime) -> bool:
        return now - as_utc(record.last_sent_at) < window

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def should_throttle_status_transition(self, recipient_id, child_id, new_status, now: datetime) -> bool:
        """Non-urgent transitions are limited to one per hour per (recipient, child)."""
        if ChildStatus(new_status) == ChildStatus.ACTION:
            return False
        record = self._read(recipient_id, ThrottleSignal.STATUS_TRANSITION, child_id)
        return record is not None and self._within(record, STATUS_TRANSITION_WINDOW, now)

    def record_status_transition(self, recipient_id, child_id, transition: str, now: datetime):
        """Remember the transition just sent for this recipient and child."""
        return self._record(recipient_id, ThrottleSignal.STATUS_TRANSITION, child_id, transition, now)

    # -------------------------------------------------------------------
    # Login fingerprints
    # -------------------------------------------------------------------
    def has_recently_notified_for_fingerprint(self, recipient_id, fingerprint: str, now: datetime) -> bool:
        """Same device fingerprint announced within the last 5 minutes."""
        record = self._read(recipient_id, ThrottleSignal.LOGIN_FINGERPRINT, fingerprint)
        return record is not None and self._within(record, FINGERPRINT_DEDUP_WINDOW, now)

    def record_fingerprint(self, recipient_id, fingerprint: str, now: datetime):
        return self._record(recipient_id, ThrottleSignal.LOGIN_FINGERPRINT, fingerprint, fingerprint, now)

    # -------------------------------------------------------------------
    # Sync-timeout thresholds
    # -------------------------------------------------------------------
    def has_already_notified_for_threshold(self, recipient_id, device_id, threshold_hours: int, now: datetime) -> bool:
        """True iff a threshold at least this large was notified within this threshold's duration."""
        record = self._read(recipient_id, ThrottleSignal.SYNC_THRESHOLD, device_id)
        if record is None or record.last_key is None:
            return False
        last_threshold = int(record.last_key)
        return last_threshold >= threshold_hours and self._within(record, timedelta(hours=threshold_hours), now)

    def record_threshold(self, recipient_id, device_id, threshold_hours: int, now: datetime):
        """Remember the largest offline threshold this guardian was told about."""
        return self._record(recipient_id, ThrottleSignal.SYNC_THRESHOLD, device_id, threshold_hours, now)

    # -------------------------------------------------------------------
    # Permission revocation
    # -------------------------------------------------------------------
    def is_permission_revoked_cooling_down(self, recipient_id, device_id, now: datetime) -> bool:
        """A revocation for this device was announced within the cooldown."""
        record = self._read(recipient_id, ThrottleSignal.PERMISSION_REVOKED, device_id)
        return record is not None and self._within(record, PERMISSION_REVOKED_COOLDOWN, now)

    def record_permission_revoked(self, recipient_id, device_id, now: datetime):
        return self._record(recipient_id, ThrottleSignal.PERMISSION_REVOKED, device_id, "revoked", now)
