"""GuardianPreference aggregate: what a guardian is notified about, and when.

One record per guardian per child, plus an optional family-wide default
(``child_id`` unset). Fields left unset fall back to built-in defaults when
the record is resolved into ``RecipientSettings``.
"""

import json
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String

from safety_notifications.domain import safety_notifications
from safety_notifications.preference.events import (
    GuardianPreferencesUpdated,
    GuardianQuietHoursCleared,
    GuardianQuietHoursSet,
)
from safety_notifications.preference.settings import (
    CATEGORY_FIELDS,
    VALID_SYNC_THRESHOLDS,
    MediumFlagsMode,
    RecipientSettings,
    merge_guardian_settings,
    parse_hhmm,
)
from safety_notifications.utils.timeutil import utc_now


def _validate_timezone(name: str) -> None:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError({"quiet_hours_timezone": [f"Unknown timezone: {name}"]}) from None


@safety_notifications.aggregate
class GuardianPreference:
    guardian_id: Identifier(required=True)
    family_id: Identifier()
    child_id: Identifier()  # unset: family-wide default

    # Content flags by severity
    critical_flags_enabled: Boolean()
    medium_flags_mode: String(choices=MediumFlagsMode, max_length=10)
    low_flags_enabled: Boolean()

    # Screen time
    time_limit_warnings_enabled: Boolean()
    limit_reached_enabled: Boolean()
    extension_requests_enabled: Boolean()

    # Devices
    sync_alerts_enabled: Boolean()
    sync_threshold_hours: Integer()
    device_status_enabled: Boolean()
    device_sync_recovery_enabled: Boolean()

    status_changes_enabled: Boolean()
    location_alerts_enabled: Boolean()

    # Quiet hours
    quiet_hours_enabled: Boolean()
    quiet_hours_start: String(max_length=5)
    quiet_hours_end: String(max_length=5)
    quiet_hours_weekend_different: Boolean()
    quiet_hours_weekend_start: String(max_length=5)
    quiet_hours_weekend_end: String(max_length=5)
    quiet_hours_timezone: String(max_length=64)

    updated_at: DateTime()

    def update_categories(self, **changes):
        """Set category preferences. Keys are field names; ``None`` values are ignored."""
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            raise ValidationError({"preferences": ["At least one preference must be provided"]})

        allowed = set(CATEGORY_FIELDS) | {"medium_flags_mode", "sync_threshold_hours"}
        unknown = sorted(set(changes) - allowed)
        if unknown:
            raise ValidationError({"preferences": [f"Unknown preference: {name}" for name in unknown]})

        if "medium_flags_mode" in changes:
            mode = changes["medium_flags_mode"]
            mode = mode.value if isinstance(mode, MediumFlagsMode) else mode
            if mode not in {m.value for m in MediumFlagsMode}:
                raise ValidationError({"medium_flags_mode": [f"Invalid mode: {mode}"]})
            changes["medium_flags_mode"] = mode

        if "sync_threshold_hours" in changes and changes["sync_threshold_hours"] not in VALID_SYNC_THRESHOLDS:
            raise ValidationError(
                {"sync_threshold_hours": [f"Threshold must be one of {', '.join(map(str, VALID_SYNC_THRESHOLDS))}"]}
            )

        now = utc_now()
        for name, value in changes.items():
            setattr(self, name, value)
        self.updated_at = now

        self.raise_(
            GuardianPreferencesUpdated(
                preference_id=str(self.id),
                guardian_id=str(self.guardian_id),
                child_id=str(self.child_id) if self.child_id else None,
                changes=json.dumps(changes, sort_keys=True),
                updated_at=now,
            )
        )

    def set_quiet_hours(self, start, end, weekend_start=None, weekend_end=None, timezone=None):
        """Enable quiet hours. A weekend window is used only when both ends are given."""
        if not start or not end:
            raise ValidationError({"quiet_hours": ["Both start and end times are required"]})
        parse_hhmm(start, "quiet_hours_start")
        parse_hhmm(end, "quiet_hours_end")

        weekend_different = bool(weekend_start or weekend_end)
        if weekend_different:
            if not (weekend_start and weekend_end):
                raise ValidationError({"quiet_hours_weekend": ["Both weekend start and end times are required"]})
            parse_hhmm(weekend_start, "quiet_hours_weekend_start")
            parse_hhmm(weekend_end, "quiet_hours_weekend_end")
        if timezone:
            _validate_timezone(timezone)

        now = utc_now()
        self.quiet_hours_enabled = True
        self.quiet_hours_start = start
        self.quiet_hours_end = end
        self.quiet_hours_weekend_different = weekend_different
        self.quiet_hours_weekend_start = weekend_start
        self.quiet_hours_weekend_end = weekend_end
        if timezone:
            self.quiet_hours_timezone = timezone
        self.updated_at = now

        self.raise_(
            GuardianQuietHoursSet(
                preference_id=str(self.id),
                guardian_id=str(self.guardian_id),
                start=start,
                end=end,
                timezone=self.quiet_hours_timezone,
                updated_at=now,
            )
        )

    def clear_quiet_hours(self):
        now = utc_now()
        self.quiet_hours_enabled = False
        self.updated_at = now

        self.raise_(
            GuardianQuietHoursCleared(
                preference_id=str(self.id),
                guardian_id=str(self.guardian_id),
                cleared_at=now,
            )
        )

    def settings(self) -> RecipientSettings:
        return merge_guardian_settings(self)
