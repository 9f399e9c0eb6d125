"""Outcome reason codes shared by routing, throttling, digest and delivery.

Reasons describe business outcomes, not failures to be raised: callers get
them back inside structured results. Only malformed input raises.
"""

from enum import Enum


class Reason(Enum):
    # Recipient resolution
    NO_RECIPIENTS = "no_recipients"

    # Channel delivery
    NO_TOKENS = "no_tokens"
    NO_ENDPOINTS = "no_endpoints"
    SEND_FAILED = "send_failed"

    # Preferences
    PREFERENCES_UNAVAILABLE = "preferences_unavailable"
    CRITICAL_DISABLED = "critical_disabled"
    MEDIUM_OFF = "medium_off"
    LOW_DISABLED = "low_disabled"
    CATEGORY_DISABLED = "category_disabled"

    # Deferral and intentional non-delivery
    QUIET_HOURS_DELAYED = "quiet_hours_delayed"
    SUPPRESSED_STEALTH = "suppressed_stealth"
    THROTTLED = "throttled"
    ALREADY_SENT_TODAY = "already_sent_today"
    BELOW_THRESHOLD = "below_threshold"

    # Routing
    IMMEDIATE = "immediate"
    HOURLY_DIGEST = "hourly_digest"
    DAILY_DIGEST = "daily_digest"

    # Digest drain
    NO_PENDING_ITEMS = "no_pending_items"
