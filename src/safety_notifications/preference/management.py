"""Preference management commands + handlers."""

import structlog
from protean.fields import Boolean, Identifier, Integer, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from safety_notifications.domain import safety_notifications
from safety_notifications.preference.channel import ChannelPreference
from safety_notifications.preference.child import ChildPreference
from safety_notifications.preference.guardian import GuardianPreference
from safety_notifications.preference.loader import initialize_child_preferences
from safety_notifications.preference.settings import CATEGORY_FIELDS
from safety_notifications.store import Store

logger = structlog.get_logger(__name__)


@safety_notifications.command(part_of="GuardianPreference")
class UpdateGuardianPreferences:
    """Change a guardian's category preferences for one child or family-wide."""

    guardian_id: Identifier(required=True)
    family_id: Identifier()
    child_id: Identifier()
    critical_flags_enabled: Boolean()
    medium_flags_mode: String(max_length=10)
    low_flags_enabled: Boolean()
    time_limit_warnings_enabled: Boolean()
    limit_reached_enabled: Boolean()
    extension_requests_enabled: Boolean()
    sync_alerts_enabled: Boolean()
    sync_threshold_hours: Integer()
    device_status_enabled: Boolean()
    device_sync_recovery_enabled: Boolean()
    status_changes_enabled: Boolean()
    location_alerts_enabled: Boolean()


@safety_notifications.command(part_of="GuardianPreference")
class SetGuardianQuietHours:
    guardian_id: Identifier(required=True)
    child_id: Identifier()
    start: String(required=True, max_length=5)
    end: String(required=True, max_length=5)
    weekend_start: String(max_length=5)
    weekend_end: String(max_length=5)
    timezone: String(max_length=64)


@safety_notifications.command(part_of="GuardianPreference")
class ClearGuardianQuietHours:
    guardian_id: Identifier(required=True)
    child_id: Identifier()


def _guardian_preference(store: Store, guardian_id, child_id=None, family_id=None) -> GuardianPreference:
    """Find the exact record for (guardian, child), creating an empty one if needed."""
    for record in store.filter(GuardianPreference, guardian_id=str(guardian_id)):
        if (str(record.child_id) if record.child_id else None) == (str(child_id) if child_id else None):
            return record
    return GuardianPreference(guardian_id=guardian_id, child_id=child_id, family_id=family_id)


@safety_notifications.command_handler(part_of=GuardianPreference)
class ManageGuardianPreferencesHandler:
    @handle(UpdateGuardianPreferences)
    def update_preferences(self, command: UpdateGuardianPreferences):
        store = Store(current_domain)
        preference = _guardian_preference(store, command.guardian_id, command.child_id, command.family_id)
        changes = {name: getattr(command, name) for name in CATEGORY_FIELDS}
        changes["medium_flags_mode"] = command.medium_flags_mode
        changes["sync_threshold_hours"] = command.sync_threshold_hours
        preference.update_categories(**changes)
        store.add(preference)
        return str(preference.id)

    @handle(SetGuardianQuietHours)
    def set_quiet_hours(self, command: SetGuardianQuietHours):
        store = Store(current_domain)
        preference = _guardian_preference(store, command.guardian_id, command.child_id)
        preference.set_quiet_hours(
            command.start,
            command.end,
            weekend_start=command.weekend_start,
            weekend_end=command.weekend_end,
            timezone=command.timezone,
        )
        store.add(preference)
        return str(preference.id)

    @handle(ClearGuardianQuietHours)
    def clear_quiet_hours(self, command: ClearGuardianQuietHours):
        store = Store(current_domain)
        preference = _guardian_preference(store, command.guardian_id, command.child_id)
        preference.clear_quiet_hours()
        store.add(preference)
        return str(preference.id)


@safety_notifications.command(part_of="ChannelPreference")
class UpdateChannelPreference:
    """Change the transports used for one notification type."""

    user_id: Identifier(required=True)
    channel_type: String(required=True, max_length=50)
    push: Boolean()
    email: Boolean()
    sms: Boolean()


@safety_notifications.command(part_of="ChannelPreference")
class SetVerifiedContacts:
    user_id: Identifier(required=True)
    verified_email: String(max_length=254)
    verified_phone: String(max_length=20)


@safety_notifications.command_handler(part_of=ChannelPreference)
class ManageChannelPreferencesHandler:
    @handle(UpdateChannelPreference)
    def update_channel(self, command: UpdateChannelPreference):
        store = Store(current_domain)
        preference = store.first(ChannelPreference, user_id=str(command.user_id)) or ChannelPreference(
            user_id=command.user_id
        )
        preference.update_channel(command.channel_type, push=command.push, email=command.email, sms=command.sms)
        store.add(preference)
        return str(preference.id)

    @handle(SetVerifiedContacts)
    def set_verified_contacts(self, command: SetVerifiedContacts):
        store = Store(current_domain)
        preference = store.first(ChannelPreference, user_id=str(command.user_id)) or ChannelPreference(
            user_id=command.user_id
        )
        if command.verified_email is not None:
            preference.verified_email = command.verified_email
        if command.verified_phone is not None:
            preference.verified_phone = command.verified_phone
        store.add(preference)
        logger.info("Verified contacts updated", user_id=str(command.user_id))
        return str(preference.id)


@safety_notifications.command(part_of="ChildPreference")
class UpdateChildPreferences:
    child_id: Identifier(required=True)
    time_limit_warnings_enabled: Boolean()
    agreement_changes_enabled: Boolean()
    trust_score_changes_enabled: Boolean()
    weekly_summary_enabled: Boolean()
    quiet_hours_enabled: Boolean()
    quiet_hours_start: String(max_length=5)
    quiet_hours_end: String(max_length=5)


@safety_notifications.command_handler(part_of=ChildPreference)
class ManageChildPreferencesHandler:
    @handle(UpdateChildPreferences)
    def update_preferences(self, command: UpdateChildPreferences):
        store = Store(current_domain)
        preference = initialize_child_preferences(store, command.child_id)
        preference.update(
            time_limit_warnings_enabled=command.time_limit_warnings_enabled,
            agreement_changes_enabled=command.agreement_changes_enabled,
            trust_score_changes_enabled=command.trust_score_changes_enabled,
            weekly_summary_enabled=command.weekly_summary_enabled,
            quiet_hours_enabled=command.quiet_hours_enabled,
            quiet_hours_start=command.quiet_hours_start,
            quiet_hours_end=command.quiet_hours_end,
        )
        store.add(preference)
        return str(preference.id)
