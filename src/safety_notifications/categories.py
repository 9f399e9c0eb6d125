"""Notification categories, severities and the policy sets built on them.

A category says *what* happened; a severity says *how urgent* it is. The
sets below are hard rules, not preferences: membership decides quiet-hours
immunity, stealth bypass, forced channels and SMS eligibility.
"""

from enum import Enum


class NotificationCategory(Enum):
    CONTENT_FLAG = "content_flag"
    TIME_LIMIT_WARNING = "time_limit_warning"
    LIMIT_REACHED = "limit_reached"
    EXTENSION_REQUEST = "extension_request"
    SYNC_TIMEOUT = "sync_timeout"
    SYNC_RESTORED = "sync_restored"
    PERMISSION_REVOKED = "permission_revoked"
    DEVICE_REMOVED = "device_removed"
    LOGIN_ALERT = "login_alert"
    STATUS_CHANGE = "status_change"
    LOCATION_TRANSITION = "location_transition"
    FLAG_DIGEST = "flag_digest"
    CRISIS_RESOURCE = "crisis_resource"
    SELF_HARM = "self_harm"
    MANDATORY_REPORT = "mandatory_report"
    EMERGENCY_UNLOCK = "emergency_unlock"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.CRITICAL: 2}


def max_severity(*severities: Severity) -> Severity:
    """Return the most urgent severity (``critical > medium > low``)."""
    return max(severities, key=lambda s: s.rank)


class Priority(Enum):
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class ChannelType(Enum):
    """Channel-preference buckets a category's channel settings are stored under."""

    CRITICAL_FLAGS = "critical_flags"
    TIME_LIMIT_WARNINGS = "time_limit_warnings"
    DEVICE_SYNC_ALERTS = "device_sync_alerts"
    LOGIN_ALERTS = "login_alerts"
    SAFETY_ALERTS = "safety_alerts"
    FLAG_DIGEST = "flag_digest"
    GENERAL = "general"


class DeliveryChannel(Enum):
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"


# Never suppressed by a stealth window, whatever its state.
CRITICAL_SAFETY_CATEGORIES = frozenset(
    {
        NotificationCategory.CRISIS_RESOURCE,
        NotificationCategory.SELF_HARM,
        NotificationCategory.MANDATORY_REPORT,
        NotificationCategory.EMERGENCY_UNLOCK,
    }
)

# Need timely human action or are safety-relevant: quiet hours never apply.
QUIET_HOURS_IMMUNE_CATEGORIES = frozenset(
    {
        NotificationCategory.LOGIN_ALERT,
        NotificationCategory.EXTENSION_REQUEST,
        NotificationCategory.PERMISSION_REVOKED,
        NotificationCategory.DEVICE_REMOVED,
    }
    | CRITICAL_SAFETY_CATEGORIES
)

# Suppressed events in these categories are captured to the sealed stealth queue.
LOCATION_CATEGORIES = frozenset({NotificationCategory.LOCATION_TRANSITION})

# Channel buckets whose push/email are forced on and SMS forced off.
SECURITY_CHANNEL_TYPES = frozenset({ChannelType.LOGIN_ALERTS, ChannelType.SAFETY_ALERTS})

# The only bucket that may ever reach SMS.
SMS_ALLOWED_CHANNEL_TYPES = frozenset({ChannelType.CRITICAL_FLAGS})

CHANNEL_TYPE_FOR_CATEGORY = {
    NotificationCategory.CONTENT_FLAG: ChannelType.CRITICAL_FLAGS,
    NotificationCategory.TIME_LIMIT_WARNING: ChannelType.TIME_LIMIT_WARNINGS,
    NotificationCategory.LIMIT_REACHED: ChannelType.TIME_LIMIT_WARNINGS,
    NotificationCategory.EXTENSION_REQUEST: ChannelType.TIME_LIMIT_WARNINGS,
    NotificationCategory.SYNC_TIMEOUT: ChannelType.DEVICE_SYNC_ALERTS,
    NotificationCategory.SYNC_RESTORED: ChannelType.DEVICE_SYNC_ALERTS,
    NotificationCategory.PERMISSION_REVOKED: ChannelType.DEVICE_SYNC_ALERTS,
    NotificationCategory.DEVICE_REMOVED: ChannelType.DEVICE_SYNC_ALERTS,
    NotificationCategory.LOGIN_ALERT: ChannelType.LOGIN_ALERTS,
    NotificationCategory.FLAG_DIGEST: ChannelType.FLAG_DIGEST,
    NotificationCategory.CRISIS_RESOURCE: ChannelType.SAFETY_ALERTS,
    NotificationCategory.SELF_HARM: ChannelType.SAFETY_ALERTS,
    NotificationCategory.MANDATORY_REPORT: ChannelType.SAFETY_ALERTS,
    NotificationCategory.EMERGENCY_UNLOCK: ChannelType.SAFETY_ALERTS,
}


def channel_type_for(category: NotificationCategory) -> ChannelType:
    return CHANNEL_TYPE_FOR_CATEGORY.get(category, ChannelType.GENERAL)


def is_security_channel_type(channel_type: ChannelType) -> bool:
    return channel_type in SECURITY_CHANNEL_TYPES


def is_safety_required(category: NotificationCategory, severity: Severity) -> bool:
    """Categories that must still be delivered when preferences cannot be read."""
    if category in CRITICAL_SAFETY_CATEGORIES:
        return True
    if is_security_channel_type(channel_type_for(category)):
        return True
    return category == NotificationCategory.CONTENT_FLAG and severity == Severity.CRITICAL
