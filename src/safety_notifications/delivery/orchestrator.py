"""Multi-channel delivery: push, email fallback, standalone email, SMS.

Given an event that has already passed suppression, routing and throttle
checks, attempt each eligible channel exactly once and record every
attempt. There is no cross-channel retry loop.

Order:
1. Push to every registered endpoint. Endpoints the provider reports as
   permanently invalid are removed afterwards, best-effort.
2. Email fallback when push was enabled but nothing got through and the
   recipient has email enabled or a verified address.
3. Standalone email when email is enabled and the fallback did not fire.
4. SMS only for critical-priority critical-flag events with SMS enabled
   and a verified phone. Security types never reach SMS.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

import structlog

from safety_notifications.categories import (
    SMS_ALLOWED_CHANNEL_TYPES,
    DeliveryChannel,
    NotificationCategory,
    Priority,
    Severity,
    channel_type_for,
    is_security_channel_type,
)
from safety_notifications.delivery.channel import Channels
from safety_notifications.delivery.channel.ports import INVALID_ENDPOINT_ERRORS
from safety_notifications.delivery.endpoint import PushEndpoint, tokens_for
from safety_notifications.delivery.log import DeliveryLog, DeliveryStatus
from safety_notifications.preference.loader import ChannelView, PreferenceLoader
from safety_notifications.reasons import Reason
from safety_notifications.store import Store
from safety_notifications.utils.timeutil import utc_now

logger = structlog.get_logger(__name__)

FALLBACK_MESSAGE = "You may have missed this notification"


@dataclass(frozen=True)
class DeliveryRequest:
    recipient_id: str
    category: NotificationCategory
    title: str
    body: str
    severity: Severity = Severity.MEDIUM
    family_id: str | None = None
    data: dict = field(default_factory=dict)
    priority: Priority = Priority.NORMAL
    notification_id: str = field(default_factory=lambda: str(uuid4()))

    @property
    def action_url(self) -> str | None:
        return self.data.get("action_url")


@dataclass(frozen=True)
class ChannelAttempt:
    channel: DeliveryChannel
    success: bool
    message_id: str | None = None
    failure_reason: str | None = None
    fallback: bool = False

    @property
    def status(self) -> DeliveryStatus:
        if not self.success:
            return DeliveryStatus.FAILED
        return DeliveryStatus.FALLBACK if self.fallback else DeliveryStatus.SENT


@dataclass
class DeliveryResult:
    notification_id: str
    channels: list[ChannelAttempt] = field(default_factory=list)
    primary_channel: DeliveryChannel | None = None
    fallback_used: bool = False
    fallback_channel: DeliveryChannel | None = None
    reason: Reason | None = None

    @property
    def sent(self) -> bool:
        return any(attempt.success for attempt in self.channels)

    @property
    def all_delivered(self) -> bool:
        return bool(self.channels) and all(attempt.success for attempt in self.channels)

    @property
    def delivered_channels(self) -> list[DeliveryChannel]:
        return [attempt.channel for attempt in self.channels if attempt.success]


class DeliveryOrchestrator:
    """Sends one notification to one recipient over push, email and SMS."""

    def __init__(self, channels: Channels, store: Store, loader: PreferenceLoader):
        self.channels = channels
        self.store = store
        self.loader = loader

    def deliver(self, request: DeliveryRequest, now: datetime | None = None) -> DeliveryResult:
        """Push first, email fallback if no push landed, SMS only for critical flags. One log row per attempt."""
        now = now or utc_now()
        view = self.loader.channels_for(request.recipient_id, request.category)
        result = DeliveryResult(notification_id=request.notification_id)
        stale: list[PushEndpoint] = []

        push_succeeded = False
        if view.settings.push:
            result.primary_channel = DeliveryChannel.PUSH
            push_succeeded = self._push(request, result, stale)

        email_address = view.verified_email
        # Fallback needs an address on file whether or not email is otherwise enabled.
        if view.settings.push and not push_succeeded and email_address:
            attempt = self._email(request, email_address, fallback=True)
            result.channels.append(attempt)
            result.fallback_used = True
            result.fallback_channel = DeliveryChannel.EMAIL

        if view.settings.email and not result.fallback_used and email_address:
            result.primary_channel = result.primary_channel or DeliveryChannel.EMAIL
            result.channels.append(self._email(request, email_address, fallback=False))

        if self._sms_eligible(request, view):
            result.channels.append(self._sms(request, view.verified_phone))

        if not result.channels:
            result.reason = Reason.NO_TOKENS
        elif not result.sent:
            result.reason = Reason.SEND_FAILED

        self._log_attempts(request, result, now)
        self._remove_stale_endpoints(stale)

        logger.info(
            "Notification delivered" if result.sent else "Notification not delivered",
            notification_id=request.notification_id,
            recipient_id=str(request.recipient_id),
            category=request.category.value,
            channels=[a.channel.value for a in result.channels],
            fallback_used=result.fallback_used,
            reason=result.reason.value if result.reason else None,
        )
        return result

    # -------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------
    def _push(self, request: DeliveryRequest, result: DeliveryResult, stale: list) -> bool:
        endpoints = tokens_for(self.store, request.recipient_id)
        if not endpoints:
            return False

        tokens = [endpoint.token for endpoint in endpoints]
        data = {key: str(value) for key, value in request.data.items() if value is not None}
        data["notification_id"] = request.notification_id
        try:
            response = self.channels.push.send_multicast(tokens, request.title, request.body, data)
        except Exception as exc:
            logger.error("Push send failed", recipient_id=str(request.recipient_id), error=str(exc))
            result.channels.append(ChannelAttempt(DeliveryChannel.PUSH, success=False, failure_reason=str(exc)))
            return False

        message_id = None
        errors = []
        for endpoint, item in zip(endpoints, response.get("responses", []), strict=False):
            if item.get("success"):
                message_id = message_id or item.get("message_id")
                continue
            error = item.get("error")
            errors.append(error or "unknown")
            if error in INVALID_ENDPOINT_ERRORS:
                stale.append(endpoint)

        succeeded = response.get("success_count", 0) > 0
        result.channels.append(
            ChannelAttempt(
                DeliveryChannel.PUSH,
                success=succeeded,
                message_id=message_id,
                failure_reason=None if succeeded else ", ".join(sorted(set(errors))),
            )
        )
        return succeeded

    def _email(self, request: DeliveryRequest, to: str, fallback: bool) -> ChannelAttempt:
        try:
            response = self.channels.email.send(
                to=to,
                category=request.category.value,
                subject=request.title,
                body=request.body,
                action_url=request.action_url,
                fallback_message=FALLBACK_MESSAGE if fallback else None,
                include_unsubscribe=not is_security_channel_type(channel_type_for(request.category)),
            )
        except Exception as exc:
            logger.error("Email send failed", recipient_id=str(request.recipient_id), error=str(exc))
            return ChannelAttempt(DeliveryChannel.EMAIL, success=False, failure_reason=str(exc), fallback=fallback)
        return self._attempt_from(DeliveryChannel.EMAIL, response, fallback=fallback)

    def _sms(self, request: DeliveryRequest, to: str) -> ChannelAttempt:
        try:
            response = self.channels.sms.send(
                to=to,
                category=request.category.value,
                body=f"{request.title}: {request.body}",
            )
        except Exception as exc:
            logger.error("SMS send failed", recipient_id=str(request.recipient_id), error=str(exc))
            return ChannelAttempt(DeliveryChannel.SMS, success=False, failure_reason=str(exc))
        return self._attempt_from(DeliveryChannel.SMS, response)

    @staticmethod
    def _attempt_from(channel: DeliveryChannel, response: dict, fallback: bool = False) -> ChannelAttempt:
        if response.get("status") == "sent":
            return ChannelAttempt(channel, success=True, message_id=response.get("message_id"), fallback=fallback)
        return ChannelAttempt(
            channel,
            success=False,
            failure_reason=response.get("error", "Unknown dispatch error"),
            fallback=fallback,
        )

    def _sms_eligible(self, request: DeliveryRequest, view: ChannelView) -> bool:
        if request.priority != Priority.CRITICAL:
            return False
        if is_security_channel_type(view.channel_type) or view.channel_type not in SMS_ALLOWED_CHANNEL_TYPES:
            return False
        return view.settings.sms and bool(view.verified_phone)

    # -------------------------------------------------------------------
    # Bookkeeping
    # -------------------------------------------------------------------
    def _log_attempts(self, request: DeliveryRequest, result: DeliveryResult, now: datetime):
        for attempt in result.channels:
            try:
                self.store.add(
                    DeliveryLog(
                        notification_id=request.notification_id,
                        recipient_id=str(request.recipient_id),
                        family_id=str(request.family_id) if request.family_id else None,
                        category=request.category.value,
                        channel=attempt.channel.value,
                        status=attempt.status.value,
                        message_id=attempt.message_id,
                        failure_reason=attempt.failure_reason,
                        attempted_at=now,
                    )
                )
            except Exception as exc:
                logger.error(
                    "Failed to write delivery log",
                    notification_id=request.notification_id,
                    channel=attempt.channel.value,
                    error=str(exc),
                )

    def _remove_stale_endpoints(self, stale: list[PushEndpoint]):
        """Delete every invalid endpoint; one failure does not stop the others."""
        for endpoint in stale:
            try:
                self.store.delete(endpoint)
                logger.info("Removed invalid push endpoint", user_id=str(endpoint.user_id))
            except Exception as exc:
                logger.warning("Failed to remove invalid push endpoint", user_id=str(endpoint.user_id), error=str(exc))
