"""What to do when preference or suppression state cannot be read.

One policy object is applied by the preference loader and the stealth
manager instead of ad-hoc fallbacks at each call site.
"""

from dataclasses import dataclass
from enum import Enum

from safety_notifications.categories import NotificationCategory, Severity, is_safety_required


class OnPreferenceReadError(Enum):
    USE_SAFE_DEFAULTS = "use_safe_defaults"


class OnSuppressionReadError(Enum):
    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"


@dataclass(frozen=True)
class ReadErrorPolicy:
    on_preference_read_error: OnPreferenceReadError = OnPreferenceReadError.USE_SAFE_DEFAULTS
    on_suppression_read_error: OnSuppressionReadError = OnSuppressionReadError.FAIL_OPEN

    def delivers_without_preferences(self, category: NotificationCategory, severity: Severity) -> bool:
        """With safe defaults, required and safety categories still go out; optional ones are skipped."""
        return is_safety_required(category, severity)

    def suppresses_on_read_error(self) -> bool:
        return self.on_suppression_read_error == OnSuppressionReadError.FAIL_CLOSED
