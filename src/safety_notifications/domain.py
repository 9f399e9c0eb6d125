"""Safety Notifications bounded context: decides whether, when and how a
family member is notified.

Every delivery path runs the same sequence: stealth suppression check,
routing decision (severity, preferences, quiet hours), throttle/dedup check,
multi-channel delivery with fallback, and audit. Low and medium severity
events are batched into hourly and daily digests; quiet-hours deferrals are
parked in a per-recipient delayed queue drained by external schedulers.
"""

import structlog
from protean.domain import Domain

from safety_notifications.utils.logging import configure_logging

configure_logging()

safety_notifications = Domain(name="safety_notifications")

logger = structlog.get_logger(__name__)
