"""ChannelPreference aggregate: which transports a user wants per notification type.

Login and safety alerts are security types: push and email are always on
and SMS is always off. Writes to them are replaced by the forced values and
reads ignore whatever is stored.
"""

import json

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String, Text

from safety_notifications.categories import ChannelType, is_security_channel_type
from safety_notifications.domain import safety_notifications
from safety_notifications.preference.events import ChannelPreferenceUpdated
from safety_notifications.preference.settings import (
    FORCED_SECURITY_CHANNELS,
    ChannelSettings,
    merge_channel_settings,
)
from safety_notifications.utils.timeutil import utc_now


@safety_notifications.aggregate
class ChannelPreference:
    user_id: Identifier(required=True, unique=True)
    channels: Text()  # JSON object: channel_type -> {"push", "email", "sms"}
    verified_email: String(max_length=254)
    verified_phone: String(max_length=20)
    updated_at: DateTime()

    def _stored(self) -> dict:
        return json.loads(self.channels) if self.channels else {}

    def update_channel(self, channel_type, push=None, email=None, sms=None):
        """Change one notification type's channels. ``None`` keeps the current value."""
        try:
            channel_type = ChannelType(channel_type)
        except ValueError:
            raise ValidationError({"channel_type": [f"Unknown channel type: {channel_type}"]}) from None

        current = self.settings_for(channel_type)
        if is_security_channel_type(channel_type):
            resolved = FORCED_SECURITY_CHANNELS
        else:
            resolved = ChannelSettings(
                push=current.push if push is None else push,
                email=current.email if email is None else email,
                sms=current.sms if sms is None else sms,
            )

        stored = self._stored()
        stored[channel_type.value] = {"push": resolved.push, "email": resolved.email, "sms": resolved.sms}
        now = utc_now()
        self.channels = json.dumps(stored, sort_keys=True)
        self.updated_at = now

        self.raise_(
            ChannelPreferenceUpdated(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                channel_type=channel_type.value,
                push=resolved.push,
                email=resolved.email,
                sms=resolved.sms,
                updated_at=now,
            )
        )

    def settings_for(self, channel_type: ChannelType) -> ChannelSettings:
        return merge_channel_settings(channel_type, self._stored().get(channel_type.value))
