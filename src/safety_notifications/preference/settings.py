"""Resolved recipient settings, with defaults applied at the boundary.

Stored preference records are sparse: an unset field means "use the
default". The merge functions here are the only place defaults are
applied; everything downstream works with complete, immutable settings.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum

from protean.exceptions import ValidationError

from safety_notifications.categories import ChannelType, is_security_channel_type

VALID_SYNC_THRESHOLDS = (1, 4, 12, 24)
DEFAULT_CHILD_AGE = 12


class MediumFlagsMode(Enum):
    IMMEDIATE = "immediate"
    DIGEST = "digest"
    OFF = "off"


def parse_hhmm(value: str, label: str = "time") -> tuple[int, int]:
    """Parse ``"HH:MM"`` into ``(hour, minute)``; raises ``ValidationError``."""
    parts = (value or "").split(":")
    if len(parts) != 2:
        raise ValidationError({label: [f"Invalid time format: {value}. Use HH:MM"]})
    try:
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError
    except ValueError:
        raise ValidationError({label: [f"Invalid time format: {value}. Use HH:MM"]}) from None
    return hour, minute


@dataclass(frozen=True)
class QuietHours:
    enabled: bool = False
    start: str = "22:00"
    end: str = "07:00"
    weekend_different: bool = False
    weekend_start: str = "23:00"
    weekend_end: str = "08:00"
    timezone: str = "UTC"


GUARDIAN_QUIET_HOURS = QuietHours()
CHILD_QUIET_HOURS = QuietHours(start="21:00", end="07:00")


@dataclass(frozen=True)
class RecipientSettings:
    critical_flags_enabled: bool = True
    medium_flags_mode: MediumFlagsMode = MediumFlagsMode.DIGEST
    low_flags_enabled: bool = False
    time_limit_warnings_enabled: bool = True
    limit_reached_enabled: bool = True
    extension_requests_enabled: bool = True
    sync_alerts_enabled: bool = True
    sync_threshold_hours: int = 4
    device_status_enabled: bool = True
    device_sync_recovery_enabled: bool = False
    status_changes_enabled: bool = True
    location_alerts_enabled: bool = True
    quiet_hours: QuietHours = field(default_factory=QuietHours)


DEFAULT_GUARDIAN_SETTINGS = RecipientSettings()

# Flag-valued fields a stored record may override.
CATEGORY_FIELDS = (
    "critical_flags_enabled",
    "low_flags_enabled",
    "time_limit_warnings_enabled",
    "limit_reached_enabled",
    "extension_requests_enabled",
    "sync_alerts_enabled",
    "device_status_enabled",
    "device_sync_recovery_enabled",
    "status_changes_enabled",
    "location_alerts_enabled",
)


def merge_quiet_hours(record, defaults: QuietHours) -> QuietHours:
    if record is None:
        return defaults
    overrides = {}
    for name in ("enabled", "start", "end", "weekend_different", "weekend_start", "weekend_end", "timezone"):
        value = getattr(record, f"quiet_hours_{name}", None)
        if value is not None:
            overrides[name] = value
    return replace(defaults, **overrides)


def merge_guardian_settings(record) -> RecipientSettings:
    """Overlay a stored guardian preference record onto the built-in defaults."""
    if record is None:
        return DEFAULT_GUARDIAN_SETTINGS

    overrides = {}
    for name in CATEGORY_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            overrides[name] = value
    if record.medium_flags_mode:
        overrides["medium_flags_mode"] = MediumFlagsMode(record.medium_flags_mode)
    if record.sync_threshold_hours:
        overrides["sync_threshold_hours"] = record.sync_threshold_hours
    overrides["quiet_hours"] = merge_quiet_hours(record, GUARDIAN_QUIET_HOURS)
    return replace(DEFAULT_GUARDIAN_SETTINGS, **overrides)


# ---------------------------------------------------------------------------
# Child preferences
# ---------------------------------------------------------------------------
CHILD_REQUIRED_FIELDS = ("time_limit_warnings_enabled", "agreement_changes_enabled")


@dataclass(frozen=True)
class ChildSettings:
    time_limit_warnings_enabled: bool = True
    agreement_changes_enabled: bool = True
    trust_score_changes_enabled: bool = False
    weekly_summary_enabled: bool = False
    quiet_hours: QuietHours = CHILD_QUIET_HOURS

    def as_recipient_settings(self) -> RecipientSettings:
        """Children only receive time-limit and agreement notices; flags stay off."""
        return RecipientSettings(
            critical_flags_enabled=False,
            medium_flags_mode=MediumFlagsMode.OFF,
            low_flags_enabled=False,
            time_limit_warnings_enabled=True,
            limit_reached_enabled=True,
            extension_requests_enabled=False,
            sync_alerts_enabled=False,
            device_status_enabled=False,
            status_changes_enabled=False,
            location_alerts_enabled=False,
            quiet_hours=self.quiet_hours,
        )


def child_age_defaults(age: int | None) -> dict:
    """Optional child settings by age: 8-12 minimal, 13-15 moderate, 16+ full."""
    if age is None:
        age = DEFAULT_CHILD_AGE
    if age >= 16:
        return {"trust_score_changes_enabled": True, "weekly_summary_enabled": True}
    if age >= 13:
        return {"trust_score_changes_enabled": True, "weekly_summary_enabled": False}
    return {"trust_score_changes_enabled": False, "weekly_summary_enabled": False}


def merge_child_settings(record, age: int | None = None) -> ChildSettings:
    base = ChildSettings(**child_age_defaults(age))
    if record is None:
        return base
    overrides = {}
    for name in ("trust_score_changes_enabled", "weekly_summary_enabled"):
        value = getattr(record, name, None)
        if value is not None:
            overrides[name] = value
    overrides["quiet_hours"] = merge_quiet_hours(record, CHILD_QUIET_HOURS)
    # Required fields are never read from storage.
    return replace(base, **overrides)


def age_from_birth_date(birth_date: date | None, today: date) -> int | None:
    if birth_date is None:
        return None
    return today.year - birth_date.year - ((today.month, today.day) < (birth_date.month, birth_date.day))


# ---------------------------------------------------------------------------
# Channel preferences
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ChannelSettings:
    push: bool = True
    email: bool = False
    sms: bool = False


FORCED_SECURITY_CHANNELS = ChannelSettings(push=True, email=True, sms=False)

DEFAULT_CHANNEL_SETTINGS = {
    ChannelType.CRITICAL_FLAGS: ChannelSettings(push=True, email=True, sms=False),
    ChannelType.DEVICE_SYNC_ALERTS: ChannelSettings(push=True, email=False, sms=False),
    ChannelType.LOGIN_ALERTS: FORCED_SECURITY_CHANNELS,
    ChannelType.SAFETY_ALERTS: FORCED_SECURITY_CHANNELS,
    ChannelType.FLAG_DIGEST: ChannelSettings(push=True, email=False, sms=False),
}


def merge_channel_settings(channel_type: ChannelType, stored: dict | None) -> ChannelSettings:
    """Resolve one channel bucket; security buckets ignore whatever is stored."""
    if is_security_channel_type(channel_type):
        return FORCED_SECURITY_CHANNELS

    defaults = DEFAULT_CHANNEL_SETTINGS.get(channel_type, ChannelSettings())
    if not stored:
        return defaults
    return ChannelSettings(
        push=bool(stored.get("push", defaults.push)),
        email=bool(stored.get("email", defaults.email)),
        sms=bool(stored.get("sms", defaults.sms)),
    )
