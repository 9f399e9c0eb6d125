"""Stealth window manager: silent, time-bounded suppression for named family members.

Inactive -> Active on ``activate``. Re-activating an unexpired window
extends it from its current end by a full duration and unions the
affected users, so protection never shrinks. Expiry is logical until
``expire_windows`` or an admin ``clear`` nulls the fields.

Nothing here raises domain events or writes to family-visible logs: the
only trace is the admin audit trail. Log lines carry ids, never reasons.
"""

import json
from datetime import datetime, timedelta

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

from safety_notifications.categories import CRITICAL_SAFETY_CATEGORIES, LOCATION_CATEGORIES, NotificationCategory
from safety_notifications.family.family import Family
from safety_notifications.policy import ReadErrorPolicy
from safety_notifications.stealth.audit import AdminAuditEntry, StealthAction
from safety_notifications.stealth.queue import StealthQueueEntry
from safety_notifications.store import Store
from safety_notifications.utils.timeutil import as_utc, utc_now

logger = structlog.get_logger(__name__)

DEFAULT_DURATION_HOURS = 72
MIN_DURATION_HOURS = 24
MAX_DURATION_HOURS = 168


class StealthWindowManager:
    """Admin-activated safety windows that silently hold notifications back from named family members."""

    def __init__(self, store: Store, policy: ReadErrorPolicy | None = None):
        self.store = store
        self.policy = policy or ReadErrorPolicy()

    def _audit(self, family: Family, action: StealthAction, actor: str, now: datetime):
        self.store.add(
            AdminAuditEntry(
                family_id=str(family.id),
                action=action.value,
                actor=actor,
                ticket_id=family.stealth_ticket_id,
                affected_user_ids=family.stealth_affected_user_ids,
                window_end=family.stealth_window_end,
                occurred_at=now,
            )
        )

    def activate(
        self,
        family_id,
        ticket_id: str,
        affected_user_ids,
        actor: str,
        duration_hours: int = DEFAULT_DURATION_HOURS,
        now: datetime | None = None,
    ) -> Family:
        """Open a window, or extend an active one by a full duration and add to its affected users."""
        if not ticket_id:
            raise ValidationError({"ticket_id": ["A support ticket is required"]})
        if not affected_user_ids:
            raise ValidationError({"affected_user_ids": ["At least one affected user is required"]})
        if not (MIN_DURATION_HOURS <= duration_hours <= MAX_DURATION_HOURS):
            raise ValidationError(
                {"duration_hours": [f"Duration must be between {MIN_DURATION_HOURS} and {MAX_DURATION_HOURS} hours"]}
            )

        now = now or utc_now()
        duration = timedelta(hours=duration_hours)
        family = self.store.get(Family, family_id)

        if family.stealth_window_active(now):
            action = StealthAction.EXTENDED
            start = as_utc(family.stealth_window_start)
            end = as_utc(family.stealth_window_end) + duration
            affected = family.affected_user_ids | {str(u) for u in affected_user_ids}
        else:
            action = StealthAction.ACTIVATED
            start, end = now, now + duration
            affected = {str(u) for u in affected_user_ids}

        family.open_stealth_window(start, end, ticket_id, affected, duration_hours)
        self.store.add(family)
        self._audit(family, action, actor, now)

        logger.info("Admin safety window updated", family_id=str(family.id), ticket_id=ticket_id, action=action.value)
        return family

    def clear(self, family_id, actor: str, now: datetime | None = None) -> Family:
        """Null every window field and audit the clearing."""
        now = now or utc_now()
        family = self.store.get(Family, family_id)
        if family.stealth_active or family.stealth_window_end is not None:
            self._audit(family, StealthAction.CLEARED, actor, now)
            family.clear_stealth_window()
            self.store.add(family)
        return family

    def is_active(self, family_id, now: datetime | None = None) -> bool:
        """Whether the family has an unexpired window."""
        family = self.store.get(Family, family_id)
        return family.stealth_window_active(now or utc_now())

    def should_suppress(
        self,
        family_id,
        category: NotificationCategory,
        target_user_id,
        payload: dict | None = None,
        now: datetime | None = None,
    ) -> bool:
        """True iff the target is shielded by an active window.

        Critical safety categories are never suppressed. When state cannot be
        read or the capture cannot be written, the read-error policy decides.
        """
        if category in CRITICAL_SAFETY_CATEGORIES:
            return False

        now = now or utc_now()
        try:
            family = self.store.get(Family, family_id)
        except ObjectNotFoundError:
            return False
        except Exception as exc:
            return self._on_read_error(family_id, target_user_id, exc)

        try:
            if not family.stealth_window_active(now):
                return False
            if str(target_user_id) not in family.affected_user_ids:
                return False
            if category in LOCATION_CATEGORIES:
                self._capture(family, category, target_user_id, payload, now)
            return True
        except Exception as exc:
            return self._on_read_error(family_id, target_user_id, exc)

    def _on_read_error(self, family_id, target_user_id, exc) -> bool:
        suppressed = self.policy.suppresses_on_read_error()
        logger.error(
            "Suppression check failed",
            family_id=str(family_id),
            target_user_id=str(target_user_id),
            suppressed=suppressed,
            error=str(exc),
        )
        return suppressed

    def _capture(self, family: Family, category, target_user_id, payload, now: datetime):
        window = family.stealth_window_duration
        self.store.add(
            StealthQueueEntry(
                family_id=str(family.id),
                target_user_id=str(target_user_id),
                notification_type=category.value,
                payload=json.dumps(payload or {}, default=str),
                ticket_id=family.stealth_ticket_id,
                captured_at=now,
                expires_at=now + window,
            )
        )

    def expire_windows(self, now: datetime | None = None) -> dict:
        """Clear expired windows and purge expired captures. Safe to run repeatedly."""
        now = now or utc_now()

        cleared = 0
        for family in self.store.filter(Family, stealth_active=True):
            if family.stealth_window_active(now):
                continue
            try:
                self._audit(family, StealthAction.EXPIRED, "system", now)
                family.clear_stealth_window()
                self.store.add(family)
                cleared += 1
            except Exception as exc:
                logger.error("Failed to expire safety window", family_id=str(family.id), error=str(exc))

        purged = 0
        for entry in self.store.filter(StealthQueueEntry):
            if as_utc(entry.expires_at) <= now:
                self.store.delete(entry)
                purged += 1

        logger.info("Safety windows expired", cleared=cleared, purged=purged)
        return {"cleared": cleared, "purged": purged}
