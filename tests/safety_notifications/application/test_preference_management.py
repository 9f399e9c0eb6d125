"""Application tests for preference commands via domain.process()."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from safety_notifications.categories import ChannelType
from safety_notifications.preference.channel import ChannelPreference
from safety_notifications.preference.child import ChildPreference
from safety_notifications.preference.guardian import GuardianPreference
from safety_notifications.preference.management import (
    ClearGuardianQuietHours,
    SetGuardianQuietHours,
    SetVerifiedContacts,
    UpdateChannelPreference,
    UpdateChildPreferences,
    UpdateGuardianPreferences,
)


class TestGuardianPreferenceCommands:
    def test_update_creates_family_default(self):
        preference_id = current_domain.process(
            UpdateGuardianPreferences(guardian_id="g-1", low_flags_enabled=True),
            asynchronous=False,
        )

        preference = current_domain.repository_for(GuardianPreference).get(preference_id)
        assert preference.low_flags_enabled is True
        assert preference.child_id is None

    def test_repeated_updates_reuse_the_record(self):
        first = current_domain.process(
            UpdateGuardianPreferences(guardian_id="g-1", low_flags_enabled=True), asynchronous=False
        )
        second = current_domain.process(
            UpdateGuardianPreferences(guardian_id="g-1", medium_flags_mode="off"), asynchronous=False
        )

        assert first == second
        preference = current_domain.repository_for(GuardianPreference).get(first)
        assert preference.low_flags_enabled is True
        assert preference.medium_flags_mode == "off"

    def test_child_override_is_separate(self):
        family_wide = current_domain.process(
            UpdateGuardianPreferences(guardian_id="g-1", low_flags_enabled=True), asynchronous=False
        )
        per_child = current_domain.process(
            UpdateGuardianPreferences(guardian_id="g-1", child_id="c-1", low_flags_enabled=False), asynchronous=False
        )

        assert family_wide != per_child

    def test_invalid_threshold_rejected(self):
        with pytest.raises(ValidationError) as exc:
            current_domain.process(
                UpdateGuardianPreferences(guardian_id="g-1", sync_threshold_hours=3), asynchronous=False
            )

        assert "sync_threshold_hours" in exc.value.messages

    def test_empty_update_rejected(self):
        with pytest.raises(ValidationError):
            current_domain.process(UpdateGuardianPreferences(guardian_id="g-1"), asynchronous=False)

    def test_set_and_clear_quiet_hours(self):
        preference_id = current_domain.process(
            SetGuardianQuietHours(guardian_id="g-1", start="22:00", end="06:30", timezone="America/New_York"),
            asynchronous=False,
        )
        preference = current_domain.repository_for(GuardianPreference).get(preference_id)
        assert preference.quiet_hours_enabled is True
        assert preference.quiet_hours_timezone == "America/New_York"

        current_domain.process(ClearGuardianQuietHours(guardian_id="g-1"), asynchronous=False)

        preference = current_domain.repository_for(GuardianPreference).get(preference_id)
        assert preference.quiet_hours_enabled is False

    def test_bad_quiet_hours_rejected(self):
        with pytest.raises(ValidationError):
            current_domain.process(
                SetGuardianQuietHours(guardian_id="g-1", start="25:00", end="06:00"), asynchronous=False
            )


class TestChannelPreferenceCommands:
    def test_update_channel(self):
        preference_id = current_domain.process(
            UpdateChannelPreference(user_id="g-1", channel_type="critical_flags", sms=True), asynchronous=False
        )

        preference = current_domain.repository_for(ChannelPreference).get(preference_id)
        settings = preference.settings_for(ChannelType.CRITICAL_FLAGS)
        assert settings.sms is True
        assert settings.push is True

    def test_unknown_channel_type_rejected(self):
        with pytest.raises(ValidationError):
            current_domain.process(UpdateChannelPreference(user_id="g-1", channel_type="pigeon"), asynchronous=False)

    def test_verified_contacts_update_only_given_fields(self):
        current_domain.process(
            SetVerifiedContacts(user_id="g-1", verified_email="a@example.com", verified_phone="+15550100"),
            asynchronous=False,
        )
        preference_id = current_domain.process(
            SetVerifiedContacts(user_id="g-1", verified_email="b@example.com"), asynchronous=False
        )

        preference = current_domain.repository_for(ChannelPreference).get(preference_id)
        assert preference.verified_email == "b@example.com"
        assert preference.verified_phone == "+15550100"


class TestChildPreferenceCommands:
    def test_update_optional_notices(self):
        preference_id = current_domain.process(
            UpdateChildPreferences(child_id="c-1", weekly_summary_enabled=True), asynchronous=False
        )

        preference = current_domain.repository_for(ChildPreference).get(preference_id)
        assert preference.weekly_summary_enabled is True

    def test_required_notices_cannot_be_disabled(self):
        preference_id = current_domain.process(
            UpdateChildPreferences(child_id="c-1", time_limit_warnings_enabled=False, weekly_summary_enabled=True),
            asynchronous=False,
        )

        preference = current_domain.repository_for(ChildPreference).get(preference_id)
        assert preference.time_limit_warnings_enabled is True
