"""Family and Child aggregates: the grouping notifications fan out over.

Only the fields the notification core reads live here. The stealth fields
are written exclusively by the stealth window manager and are never
exposed to family members; changing them raises no domain events.
"""

import json
from datetime import date, datetime, timedelta

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Date, DateTime, Identifier, Integer, String, Text

from safety_notifications.domain import safety_notifications
from safety_notifications.preference.settings import age_from_birth_date
from safety_notifications.utils.timeutil import as_utc, utc_now


@safety_notifications.aggregate
class Family:
    """Guardians and children sharing settings and safety state."""

    name: String(max_length=200)
    guardian_ids: Text()  # JSON list
    child_ids: Text()  # JSON list

    # Stealth window (admin only)
    stealth_active: Boolean(default=False)
    stealth_window_start: DateTime()
    stealth_window_end: DateTime()
    stealth_window_hours: Integer()  # duration of the latest activation
    stealth_ticket_id: String(max_length=100)
    stealth_affected_user_ids: Text()  # JSON list, used as a set

    fleeing_mode_activated_at: DateTime()

    @invariant.post
    def active_stealth_window_must_end_after_start(self):
        if not self.stealth_active:
            return
        if self.stealth_window_start is None or self.stealth_window_end is None:
            raise ValidationError({"stealth_window": ["An active stealth window needs a start and an end"]})
        if as_utc(self.stealth_window_end) <= as_utc(self.stealth_window_start):
            raise ValidationError({"stealth_window": ["Stealth window must end after it starts"]})

    @classmethod
    def create(cls, guardian_ids, child_ids=None, name=None, **kwargs):
        return cls(
            name=name,
            guardian_ids=json.dumps([str(g) for g in guardian_ids]),
            child_ids=json.dumps([str(c) for c in (child_ids or [])]),
            **kwargs,
        )

    @property
    def guardians(self) -> list[str]:
        return json.loads(self.guardian_ids) if self.guardian_ids else []

    @property
    def children(self) -> list[str]:
        return json.loads(self.child_ids) if self.child_ids else []

    @property
    def affected_user_ids(self) -> set[str]:
        return set(json.loads(self.stealth_affected_user_ids)) if self.stealth_affected_user_ids else set()

    @property
    def in_fleeing_mode(self) -> bool:
        return self.fleeing_mode_activated_at is not None

    def add_guardian(self, guardian_id):
        guardians = self.guardians
        if str(guardian_id) not in guardians:
            guardians.append(str(guardian_id))
            self.guardian_ids = json.dumps(guardians)

    def add_child(self, child_id):
        children = self.children
        if str(child_id) not in children:
            children.append(str(child_id))
            self.child_ids = json.dumps(children)

    # -------------------------------------------------------------------
    # Stealth window
    # -------------------------------------------------------------------
    @property
    def stealth_window_duration(self) -> timedelta | None:
        """Length of one activation. Extensions move the end but not this."""
        if self.stealth_window_hours:
            return timedelta(hours=self.stealth_window_hours)
        if self.stealth_window_start is None or self.stealth_window_end is None:
            return None
        return as_utc(self.stealth_window_end) - as_utc(self.stealth_window_start)

    def stealth_window_active(self, now: datetime) -> bool:
        if not self.stealth_active or self.stealth_window_end is None:
            return False
        return as_utc(self.stealth_window_end) > now

    def open_stealth_window(self, start, end, ticket_id, affected_user_ids, duration_hours=None):
        with atomic_change(self):
            self.stealth_active = True
            self.stealth_window_start = start
            self.stealth_window_end = end
            self.stealth_window_hours = duration_hours
            self.stealth_ticket_id = ticket_id
            self.stealth_affected_user_ids = json.dumps(sorted(str(u) for u in affected_user_ids))

    def clear_stealth_window(self):
        with atomic_change(self):
            self.stealth_active = False
            self.stealth_window_start = None
            self.stealth_window_end = None
            self.stealth_window_hours = None
            self.stealth_ticket_id = None
            self.stealth_affected_user_ids = None

    def activate_fleeing_mode(self, at=None):
        self.fleeing_mode_activated_at = at or utc_now()

    def deactivate_fleeing_mode(self):
        self.fleeing_mode_activated_at = None


@safety_notifications.aggregate
class Child:
    """A monitored child. Name feeds digests; birth date picks preference defaults."""

    family_id: Identifier(required=True)
    name: String(required=True, max_length=100)
    birth_date: Date()

    def age_on(self, today: date) -> int | None:
        return age_from_birth_date(self.birth_date, today)
