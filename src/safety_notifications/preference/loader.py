"""Preference loading with the read-error policy applied in one place.

Guardian lookup order: the guardian's record for the child, then their
family-wide default, then built-in defaults. When the store cannot be
read, safety and required categories still deliver with defaults while
optional ones are skipped as ``preferences_unavailable``.
"""

from contextlib import nullcontext
from dataclasses import dataclass

import structlog
from protean import UnitOfWork
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_uow

from safety_notifications.categories import ChannelType, NotificationCategory, Severity, channel_type_for
from safety_notifications.family.family import Child
from safety_notifications.policy import ReadErrorPolicy
from safety_notifications.preference.channel import ChannelPreference
from safety_notifications.preference.child import ChildPreference
from safety_notifications.preference.guardian import GuardianPreference
from safety_notifications.preference.settings import (
    DEFAULT_GUARDIAN_SETTINGS,
    ChannelSettings,
    ChildSettings,
    RecipientSettings,
    merge_channel_settings,
    merge_guardian_settings,
)
from safety_notifications.reasons import Reason
from safety_notifications.store import Store
from safety_notifications.utils.timeutil import utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PreferenceLookup:
    settings: RecipientSettings | None
    from_defaults: bool = False
    reason: Reason | None = None

    @property
    def available(self) -> bool:
        return self.settings is not None


@dataclass(frozen=True)
class ChannelView:
    """Resolved channel settings for one user and channel type."""

    channel_type: ChannelType
    settings: ChannelSettings
    verified_email: str | None = None
    verified_phone: str | None = None


class PreferenceLoader:
    def __init__(self, store: Store, policy: ReadErrorPolicy):
        self.store = store
        self.policy = policy

    def guardian_record(self, guardian_id, child_id=None) -> GuardianPreference | None:
        records = self.store.filter(GuardianPreference, guardian_id=str(guardian_id))
        if child_id is not None:
            for record in records:
                if record.child_id and str(record.child_id) == str(child_id):
                    return record
        for record in records:
            if not record.child_id:
                return record
        return None

    def for_guardian(
        self,
        guardian_id,
        category: NotificationCategory,
        severity: Severity,
        child_id=None,
    ) -> PreferenceLookup:
        try:
            record = self.guardian_record(guardian_id, child_id)
        except Exception as exc:
            return self._on_read_error(guardian_id, category, severity, exc)
        return PreferenceLookup(settings=merge_guardian_settings(record), from_defaults=record is None)

    def for_child(self, child_id, category: NotificationCategory, severity: Severity) -> PreferenceLookup:
        try:
            child_settings = self.child_settings(child_id)
        except Exception as exc:
            return self._on_read_error(child_id, category, severity, exc)
        return PreferenceLookup(settings=child_settings.as_recipient_settings())

    def child_settings(self, child_id) -> ChildSettings:
        preference = initialize_child_preferences(self.store, child_id)
        return preference.settings(self._child_age(child_id))

    def _child_age(self, child_id) -> int | None:
        try:
            child = self.store.get(Child, child_id)
        except ObjectNotFoundError:
            return None
        return child.age_on(utc_now().date())

    def _on_read_error(self, recipient_id, category, severity, exc) -> PreferenceLookup:
        if self.policy.delivers_without_preferences(category, severity):
            logger.warning(
                "Preference read failed, delivering with safe defaults",
                recipient_id=str(recipient_id),
                category=category.value,
                error=str(exc),
            )
            return PreferenceLookup(
                settings=DEFAULT_GUARDIAN_SETTINGS,
                from_defaults=True,
                reason=Reason.PREFERENCES_UNAVAILABLE,
            )

        logger.warning(
            "Preference read failed, skipping optional notification",
            recipient_id=str(recipient_id),
            category=category.value,
            error=str(exc),
        )
        return PreferenceLookup(settings=None, from_defaults=True, reason=Reason.PREFERENCES_UNAVAILABLE)

    # -------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------
    def channels_for(self, user_id, category: NotificationCategory) -> ChannelView:
        """Channel settings for a category; security types are forced whatever is stored."""
        channel_type = channel_type_for(category)
        try:
            record = self.store.first(ChannelPreference, user_id=str(user_id))
        except Exception as exc:
            logger.warning("Channel preference read failed, using defaults", user_id=str(user_id), error=str(exc))
            record = None

        if record is None:
            return ChannelView(channel_type=channel_type, settings=merge_channel_settings(channel_type, None))
        return ChannelView(
            channel_type=channel_type,
            settings=record.settings_for(channel_type),
            verified_email=record.verified_email,
            verified_phone=record.verified_phone,
        )


def initialize_child_preferences(store: Store, child_id, family_id=None) -> ChildPreference:
    """Return the child's preferences, creating age-appropriate defaults on first use.

    The existence check and the write happen in a single unit of work, the
    caller's when one is already open.
    """
    with nullcontext() if current_uow else UnitOfWork():
        existing = store.first(ChildPreference, child_id=str(child_id))
        if existing is not None:
            return existing

        age = None
        try:
            child = store.get(Child, child_id)
            age = child.age_on(utc_now().date())
            family_id = family_id or child.family_id
        except ObjectNotFoundError:
            logger.info("Child not found, using default age for preferences", child_id=str(child_id))

        preference = ChildPreference.create_for_age(child_id, age=age, family_id=family_id)
        store.add(preference)

    logger.info("Child preferences initialized", child_id=str(child_id))
    return preference
