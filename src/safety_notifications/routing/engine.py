"""Routing engine: pure decision from (severity, category, preferences, time) to a route.

``route`` is total: every input yields exactly one ``RouteDecision``. It
only ever looks at the single recipient's settings it is given, so
co-parents are routed independently.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from safety_notifications.categories import QUIET_HOURS_IMMUNE_CATEGORIES, NotificationCategory, Severity
from safety_notifications.preference.settings import MediumFlagsMode, RecipientSettings
from safety_notifications.reasons import Reason
from safety_notifications.routing.quiet_hours import is_quiet, quiet_hours_end_after


class Route(Enum):
    IMMEDIATE = "immediate"
    HOURLY_DIGEST = "hourly_digest"
    DAILY_DIGEST = "daily_digest"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class RouteDecision:
    route: Route
    reason: Reason
    deliver_at: datetime | None = None

    @property
    def is_delayed(self) -> bool:
        """Immediate route held back by quiet hours until ``deliver_at``."""
        return self.route == Route.IMMEDIATE and self.deliver_at is not None

    @property
    def is_digest(self) -> bool:
        return self.route in (Route.HOURLY_DIGEST, Route.DAILY_DIGEST)


# Categories gated by their own switch rather than by flag severity.
CATEGORY_ENABLE_FIELD = {
    NotificationCategory.TIME_LIMIT_WARNING: "time_limit_warnings_enabled",
    NotificationCategory.LIMIT_REACHED: "limit_reached_enabled",
    NotificationCategory.EXTENSION_REQUEST: "extension_requests_enabled",
    NotificationCategory.SYNC_TIMEOUT: "sync_alerts_enabled",
    NotificationCategory.SYNC_RESTORED: "device_sync_recovery_enabled",
    NotificationCategory.PERMISSION_REVOKED: "device_status_enabled",
    NotificationCategory.DEVICE_REMOVED: "device_status_enabled",
    NotificationCategory.STATUS_CHANGE: "status_changes_enabled",
    NotificationCategory.LOCATION_TRANSITION: "location_alerts_enabled",
}


def _route_flag(severity: Severity, preferences: RecipientSettings) -> RouteDecision:
    if severity == Severity.CRITICAL:
        if preferences.critical_flags_enabled:
            return RouteDecision(Route.IMMEDIATE, Reason.IMMEDIATE)
        return RouteDecision(Route.SKIPPED, Reason.CRITICAL_DISABLED)

    if severity == Severity.MEDIUM:
        mode = preferences.medium_flags_mode
        if mode == MediumFlagsMode.IMMEDIATE:
            return RouteDecision(Route.IMMEDIATE, Reason.IMMEDIATE)
        if mode == MediumFlagsMode.DIGEST:
            return RouteDecision(Route.HOURLY_DIGEST, Reason.HOURLY_DIGEST)
        return RouteDecision(Route.SKIPPED, Reason.MEDIUM_OFF)

    if preferences.low_flags_enabled:
        return RouteDecision(Route.DAILY_DIGEST, Reason.DAILY_DIGEST)
    return RouteDecision(Route.SKIPPED, Reason.LOW_DISABLED)


def _route_category(category: NotificationCategory, preferences: RecipientSettings) -> RouteDecision:
    field_name = CATEGORY_ENABLE_FIELD.get(category)
    if field_name is not None and not getattr(preferences, field_name):
        return RouteDecision(Route.SKIPPED, Reason.CATEGORY_DISABLED)
    return RouteDecision(Route.IMMEDIATE, Reason.IMMEDIATE)


def is_quiet_hours_immune(category: NotificationCategory, severity: Severity) -> bool:
    return category in QUIET_HOURS_IMMUNE_CATEGORIES or severity == Severity.CRITICAL


def route(
    severity: Severity,
    category: NotificationCategory,
    preferences: RecipientSettings,
    now: datetime,
    bypass_quiet_hours: bool = False,
) -> RouteDecision:
    if category == NotificationCategory.CONTENT_FLAG:
        decision = _route_flag(severity, preferences)
    else:
        decision = _route_category(category, preferences)

    if decision.route != Route.IMMEDIATE:
        return decision
    if bypass_quiet_hours or is_quiet_hours_immune(category, severity):
        return decision
    if is_quiet(preferences.quiet_hours, now):
        return RouteDecision(
            Route.IMMEDIATE,
            Reason.QUIET_HOURS_DELAYED,
            deliver_at=quiet_hours_end_after(preferences.quiet_hours, now),
        )
    return decision
