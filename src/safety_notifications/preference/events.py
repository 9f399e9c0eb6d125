"""Domain events for the preference aggregates."""

from protean.fields import Boolean, DateTime, Identifier, String, Text

from safety_notifications.domain import safety_notifications


@safety_notifications.event(part_of="GuardianPreference")
class GuardianPreferencesUpdated:
    """A guardian changed which categories they are notified about."""

    __version__ = 1

    preference_id: Identifier(required=True)
    guardian_id: Identifier(required=True)
    child_id: Identifier()
    changes: Text(required=True)  # JSON object of field -> new value
    updated_at: DateTime(required=True)


@safety_notifications.event(part_of="GuardianPreference")
class GuardianQuietHoursSet:
    __version__ = 1

    preference_id: Identifier(required=True)
    guardian_id: Identifier(required=True)
    start: String(required=True, max_length=5)
    end: String(required=True, max_length=5)
    timezone: String(max_length=64)
    updated_at: DateTime(required=True)


@safety_notifications.event(part_of="GuardianPreference")
class GuardianQuietHoursCleared:
    __version__ = 1

    preference_id: Identifier(required=True)
    guardian_id: Identifier(required=True)
    cleared_at: DateTime(required=True)


@safety_notifications.event(part_of="ChildPreference")
class ChildPreferencesInitialized:
    """Age-appropriate defaults were stored for a child."""

    __version__ = 1

    preference_id: Identifier(required=True)
    child_id: Identifier(required=True)
    trust_score_changes_enabled: Boolean(required=True)
    weekly_summary_enabled: Boolean(required=True)
    initialized_at: DateTime(required=True)


@safety_notifications.event(part_of="ChildPreference")
class ChildPreferencesUpdated:
    __version__ = 1

    preference_id: Identifier(required=True)
    child_id: Identifier(required=True)
    changes: Text(required=True)
    updated_at: DateTime(required=True)


@safety_notifications.event(part_of="ChannelPreference")
class ChannelPreferenceUpdated:
    """A user's channel choice for one notification type changed."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    channel_type: String(required=True, max_length=50)
    push: Boolean(required=True)
    email: Boolean(required=True)
    sms: Boolean(required=True)
    updated_at: DateTime(required=True)
