"""ChildPreference aggregate: what a monitored child is told.

Time-limit warnings and agreement changes are required notices: they are
stored as ``True`` and any attempt to turn them off is silently ignored.
Optional notices start from age-appropriate defaults.
"""

import json

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String

from safety_notifications.domain import safety_notifications
from safety_notifications.preference.events import ChildPreferencesInitialized, ChildPreferencesUpdated
from safety_notifications.preference.settings import (
    CHILD_QUIET_HOURS,
    CHILD_REQUIRED_FIELDS,
    ChildSettings,
    child_age_defaults,
    merge_child_settings,
    parse_hhmm,
)
from safety_notifications.utils.timeutil import utc_now

OPTIONAL_CHILD_FIELDS = ("trust_score_changes_enabled", "weekly_summary_enabled")
CHILD_QUIET_HOURS_FIELDS = ("quiet_hours_enabled", "quiet_hours_start", "quiet_hours_end", "quiet_hours_timezone")


@safety_notifications.aggregate
class ChildPreference:
    child_id: Identifier(required=True, unique=True)
    family_id: Identifier()

    time_limit_warnings_enabled: Boolean(default=True)
    agreement_changes_enabled: Boolean(default=True)
    trust_score_changes_enabled: Boolean()
    weekly_summary_enabled: Boolean()

    quiet_hours_enabled: Boolean(default=False)
    quiet_hours_start: String(max_length=5, default=CHILD_QUIET_HOURS.start)
    quiet_hours_end: String(max_length=5, default=CHILD_QUIET_HOURS.end)
    quiet_hours_timezone: String(max_length=64)

    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def create_for_age(cls, child_id, age=None, family_id=None):
        now = utc_now()
        defaults = child_age_defaults(age)
        preference = cls(
            child_id=child_id,
            family_id=family_id,
            time_limit_warnings_enabled=True,
            agreement_changes_enabled=True,
            created_at=now,
            updated_at=now,
            **defaults,
        )
        preference.raise_(
            ChildPreferencesInitialized(
                preference_id=str(preference.id),
                child_id=str(child_id),
                initialized_at=now,
                **defaults,
            )
        )
        return preference

    def update(self, **changes):
        """Apply preference changes. Required notices cannot be switched off."""
        changes = {k: v for k, v in changes.items() if v is not None and k not in CHILD_REQUIRED_FIELDS}
        unknown = sorted(set(changes) - set(OPTIONAL_CHILD_FIELDS) - set(CHILD_QUIET_HOURS_FIELDS))
        if unknown:
            raise ValidationError({"preferences": [f"Unknown preference: {name}" for name in unknown]})
        for label in ("quiet_hours_start", "quiet_hours_end"):
            if label in changes:
                parse_hhmm(changes[label], label)

        now = utc_now()
        for name, value in changes.items():
            setattr(self, name, value)
        self.time_limit_warnings_enabled = True
        self.agreement_changes_enabled = True
        self.updated_at = now

        self.raise_(
            ChildPreferencesUpdated(
                preference_id=str(self.id),
                child_id=str(self.child_id),
                changes=json.dumps(changes, sort_keys=True),
                updated_at=now,
            )
        )

    def settings(self, age=None) -> ChildSettings:
        return merge_child_settings(self, age)
