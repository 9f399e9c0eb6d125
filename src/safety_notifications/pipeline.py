"""Notification pipeline: the per-recipient decision sequence and per-event fan-out.

For every recipient, strictly in order:

    stealth suppression -> preferences -> route -> throttle/dedup
        -> deliver | park until quiet hours end | queue for digest
        -> throttle bookkeeping and history

Recipients of one event are processed independently: each guardian is
routed with their own preferences only, and a failure for one is logged,
recorded as ``failed`` and does not stop the others.

Suppressed recipients leave no history entry and no log line.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

from safety_notifications.categories import (
    CRITICAL_SAFETY_CATEGORIES,
    NotificationCategory,
    Priority,
    Severity,
)
from safety_notifications.context import NotificationContext
from safety_notifications.delivery.delayed import DelayedNotification
from safety_notifications.delivery.log import Outcome, already_sent_today, record_history
from safety_notifications.delivery.orchestrator import DeliveryOrchestrator, DeliveryRequest, DeliveryResult
from safety_notifications.digest.item import DigestType
from safety_notifications.digest.service import DigestService
from safety_notifications.family.family import Family
from safety_notifications.preference.loader import PreferenceLoader
from safety_notifications.preference.settings import RecipientSettings
from safety_notifications.reasons import Reason
from safety_notifications.routing.engine import Route, RouteDecision, route
from safety_notifications.stealth.window import StealthWindowManager
from safety_notifications.templates import build_content
from safety_notifications.throttle.store import ChildStatus, ThrottleStore
from safety_notifications.utils.timeutil import utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    """Ephemeral input to the pipeline. Not persisted.

    With ``recipient_id`` unset the event fans out to every guardian of
    the family.
    """

    family_id: str
    category: NotificationCategory
    severity: Severity
    content: dict = field(default_factory=dict)
    recipient_id: str | None = None
    bypass_quiet_hours: bool = False
    child_id: str | None = None
    child_name: str | None = None
    source_event_id: str | None = None
    priority: Priority = Priority.NORMAL
    recipient_is_child: bool = False


class DispatchStatus(Enum):
    SENT = "sent"
    FAILED = "failed"
    DELAYED = "delayed"
    QUEUED = "queued"
    SKIPPED = "skipped"
    SUPPRESSED = "suppressed"


@dataclass
class RecipientOutcome:
    recipient_id: str
    status: DispatchStatus
    reason: Reason | None = None
    route: Route | None = None
    delivery: DeliveryResult | None = None
    deliver_at: datetime | None = None
    error: str | None = None

    @property
    def sent(self) -> bool:
        return self.status == DispatchStatus.SENT

    @property
    def delayed(self) -> bool:
        return self.status == DispatchStatus.DELAYED

    @property
    def suppressed(self) -> bool:
        return self.status == DispatchStatus.SUPPRESSED


@dataclass
class DispatchResult:
    event_id: str
    outcomes: list[RecipientOutcome] = field(default_factory=list)
    reason: Reason | None = None

    def for_recipient(self, recipient_id) -> RecipientOutcome | None:
        for outcome in self.outcomes:
            if outcome.recipient_id == str(recipient_id):
                return outcome
        return None

    @property
    def sent_count(self) -> int:
        return sum(1 for o in self.outcomes if o.sent)


@dataclass(frozen=True)
class ThrottleGate:
    """Signal-specific throttle hooks: ``check`` returns a blocking reason or None."""

    check: Callable[[str, RecipientSettings, datetime], Reason | None]
    record: Callable[[str, datetime], object]


STATUS_SEVERITY = {
    ChildStatus.GOOD: Severity.LOW,
    ChildStatus.ATTENTION: Severity.MEDIUM,
    ChildStatus.ACTION: Severity.CRITICAL,
}


class NotificationPipeline:
    def __init__(self, context: NotificationContext):
        self.context = context
        self.store = context.store
        self.loader = PreferenceLoader(context.store, context.policy)
        self.stealth = StealthWindowManager(context.store, context.policy)
        self.throttle = ThrottleStore(context.store)
        self.orchestrator = DeliveryOrchestrator(context.channels, context.store, self.loader)
        self.digest = DigestService(context.store, self.orchestrator, self.loader, self.stealth)

    # -------------------------------------------------------------------
    # Fan-out
    # -------------------------------------------------------------------
    def _recipients(self, event: NotificationEvent) -> list[str]:
        if event.recipient_id:
            return [str(event.recipient_id)]
        try:
            family = self.store.get(Family, event.family_id)
        except ObjectNotFoundError:
            logger.warning("Family not found for notification", family_id=str(event.family_id))
            return []
        return family.guardians

    def process(
        self,
        event: NotificationEvent,
        now: datetime | None = None,
        gate: ThrottleGate | None = None,
    ) -> DispatchResult:
        now = now or utc_now()
        result = DispatchResult(event_id=str(uuid4()))

        recipients = self._recipients(event)
        if not recipients:
            result.reason = Reason.NO_RECIPIENTS
            return result

        for recipient_id in recipients:
            try:
                outcome = self.process_recipient(event, recipient_id, now, gate)
            except Exception as exc:
                logger.error(
                    "Notification failed for recipient",
                    recipient_id=recipient_id,
                    family_id=str(event.family_id),
                    category=event.category.value,
                    error=str(exc),
                )
                outcome = RecipientOutcome(recipient_id, DispatchStatus.FAILED, error=str(exc))
            result.outcomes.append(outcome)
        return result

    # -------------------------------------------------------------------
    # Per-recipient sequence
    # -------------------------------------------------------------------
    def process_recipient(
        self,
        event: NotificationEvent,
        recipient_id: str,
        now: datetime,
        gate: ThrottleGate | None = None,
    ) -> RecipientOutcome:
        notification_id = str(uuid4())

        if self.stealth.should_suppress(event.family_id, event.category, recipient_id, event.content, now):
            return RecipientOutcome(recipient_id, DispatchStatus.SUPPRESSED, reason=Reason.SUPPRESSED_STEALTH)

        if event.recipient_is_child:
            lookup = self.loader.for_child(recipient_id, event.category, event.severity)
        else:
            lookup = self.loader.for_guardian(recipient_id, event.category, event.severity, event.child_id)
        if not lookup.available:
            return self._skip(event, recipient_id, notification_id, lookup.reason, now)

        decision = route(event.severity, event.category, lookup.settings, now, event.bypass_quiet_hours)
        if decision.route == Route.SKIPPED:
            return self._skip(event, recipient_id, notification_id, decision.reason, now, decision)
        if decision.is_digest:
            return self._queue_digest(event, recipient_id, decision, now)

        if gate is not None:
            blocked = gate.check(recipient_id, lookup.settings, now)
            if blocked is not None:
                return self._skip(event, recipient_id, notification_id, blocked, now, decision)

        content = build_content(event.category, self._template_context(event))
        request = DeliveryRequest(
            notification_id=notification_id,
            recipient_id=recipient_id,
            family_id=str(event.family_id),
            category=event.category,
            severity=event.severity,
            priority=event.priority,
            title=content["title"],
            body=content["body"],
            data=content["data"],
        )

        if decision.is_delayed:
            # A parked notification counts as notified for throttling.
            if gate is not None:
                gate.record(recipient_id, now)
            return self._delay(event, request, decision, now)

        delivery = self.orchestrator.deliver(request, now)
        if delivery.sent and gate is not None:
            gate.record(recipient_id, now)

        self._history(event, request, Outcome.SENT if delivery.sent else Outcome.FAILED, now, delivery.reason, delivery)
        return RecipientOutcome(
            recipient_id,
            DispatchStatus.SENT if delivery.sent else DispatchStatus.FAILED,
            reason=delivery.reason,
            route=decision.route,
            delivery=delivery,
        )

    @staticmethod
    def _template_context(event: NotificationEvent) -> dict:
        context = {key: value for key, value in event.content.items() if value is not None}
        context.setdefault("child_id", event.child_id)
        context.setdefault("child_name", event.child_name or "Your child")
        context.setdefault("severity", event.severity.value)
        return context

    def _skip(self, event, recipient_id, notification_id, reason, now, decision: RouteDecision | None = None):
        record_history(
            self.store,
            notification_id,
            recipient_id,
            event.category,
            Outcome.SKIPPED,
            now,
            reason=reason,
            family_id=event.family_id,
            child_id=event.child_id,
            severity=event.severity,
        )
        return RecipientOutcome(
            recipient_id,
            DispatchStatus.SKIPPED,
            reason=reason,
            route=decision.route if decision else None,
        )

    def _queue_digest(self, event: NotificationEvent, recipient_id, decision: RouteDecision, now: datetime):
        digest_type = DigestType.HOURLY if decision.route == Route.HOURLY_DIGEST else DigestType.DAILY
        self.digest.enqueue(
            recipient_id,
            digest_type,
            event.severity,
            event.category,
            now,
            family_id=event.family_id,
            source_event_id=event.source_event_id,
            child_id=event.child_id,
            child_name=event.child_name,
        )
        return RecipientOutcome(recipient_id, DispatchStatus.QUEUED, reason=decision.reason, route=decision.route)

    def _delay(self, event: NotificationEvent, request: DeliveryRequest, decision: RouteDecision, now: datetime):
        self.store.add(DelayedNotification.schedule(request, decision.deliver_at, now, child_id=event.child_id))
        self._history(event, request, Outcome.DELAYED, now, Reason.QUIET_HOURS_DELAYED)
        return RecipientOutcome(
            request.recipient_id,
            DispatchStatus.DELAYED,
            reason=Reason.QUIET_HOURS_DELAYED,
            route=decision.route,
            deliver_at=decision.deliver_at,
        )

    def _history(self, event, request: DeliveryRequest, outcome: Outcome, now, reason=None, delivery=None):
        record_history(
            self.store,
            request.notification_id,
            request.recipient_id,
            event.category,
            outcome,
            now,
            reason=reason,
            family_id=event.family_id,
            child_id=event.child_id,
            severity=event.severity,
            title=request.title,
            channels=delivery.delivered_channels if delivery else None,
        )

    # -------------------------------------------------------------------
    # Source events
    # -------------------------------------------------------------------
    def notify_content_flag(
        self,
        family_id,
        child_id,
        severity: Severity,
        flag_id,
        flag_type="content",
        child_name=None,
        now=None,
    ) -> DispatchResult:
        event = NotificationEvent(
            family_id=str(family_id),
            category=NotificationCategory.CONTENT_FLAG,
            severity=severity,
            content={"flag_id": flag_id, "flag_type": flag_type},
            child_id=str(child_id),
            child_name=child_name,
            source_event_id=str(flag_id),
            priority=Priority.CRITICAL if severity == Severity.CRITICAL else Priority.NORMAL,
        )
        return self.process(event, now)

    def notify_login(self, user_id, family_id, fingerprint, device_name=None, location=None, now=None):
        """Security alert to the account owner; repeats for one fingerprint are absorbed for 5 minutes."""
        content = {"fingerprint": fingerprint, "device_name": device_name}
        if location and not self._fleeing_mode(family_id):
            content["location"] = location

        gate = ThrottleGate(
            check=lambda rid, _settings, at: (
                Reason.THROTTLED if self.throttle.has_recently_notified_for_fingerprint(rid, fingerprint, at) else None
            ),
            record=lambda rid, at: self.throttle.record_fingerprint(rid, fingerprint, at),
        )
        event = NotificationEvent(
            family_id=str(family_id),
            category=NotificationCategory.LOGIN_ALERT,
            severity=Severity.CRITICAL,
            content=content,
            recipient_id=str(user_id),
            bypass_quiet_hours=True,
            priority=Priority.HIGH,
        )
        return self.process(event, now, gate)

    def _fleeing_mode(self, family_id) -> bool:
        """Unreadable family state is treated as fleeing mode: location is withheld."""
        try:
            return self.store.get(Family, family_id).in_fleeing_mode
        except Exception as exc:
            logger.warning("Family unreadable, withholding login location", family_id=str(family_id), error=str(exc))
            return True

    def notify_sync_timeout(
        self,
        family_id,
        device_id,
        threshold_hours: int,
        child_id=None,
        child_name=None,
        device_name=None,
        now=None,
    ) -> DispatchResult:
        """Offline device crossed ``threshold_hours``; each guardian is told once per larger threshold."""

        def check(recipient_id, settings: RecipientSettings, at):
            if threshold_hours < settings.sync_threshold_hours:
                return Reason.BELOW_THRESHOLD
            if self.throttle.has_already_notified_for_threshold(recipient_id, device_id, threshold_hours, at):
                return Reason.THROTTLED
            return None

        gate = ThrottleGate(
            check=check,
            record=lambda rid, at: self.throttle.record_threshold(rid, device_id, threshold_hours, at),
        )
        event = NotificationEvent(
            family_id=str(family_id),
            category=NotificationCategory.SYNC_TIMEOUT,
            severity=Severity.MEDIUM,
            content={"device_id": device_id, "threshold_hours": threshold_hours, "device_name": device_name},
            child_id=child_id,
            child_name=child_name,
        )
        return self.process(event, now, gate)

    def notify_sync_restored(self, family_id, device_id, child_id=None, child_name=None, device_name=None, now=None):
        event = NotificationEvent(
            family_id=str(family_id),
            category=NotificationCategory.SYNC_RESTORED,
            severity=Severity.LOW,
            content={"device_id": device_id, "device_name": device_name},
            child_id=child_id,
            child_name=child_name,
        )
        return self.process(event, now)

    def notify_permission_revoked(self, family_id, device_id, permission, child_id=None, child_name=None, now=None):
        gate = ThrottleGate(
            check=lambda rid, _settings, at: (
                Reason.THROTTLED if self.throttle.is_permission_revoked_cooling_down(rid, device_id, at) else None
            ),
            record=lambda rid, at: self.throttle.record_permission_revoked(rid, device_id, at),
        )
        event = NotificationEvent(
            family_id=str(family_id),
            category=NotificationCategory.PERMISSION_REVOKED,
            severity=Severity.MEDIUM,
            content={"device_id": device_id, "permission": permission},
            child_id=child_id,
            child_name=child_name,
            priority=Priority.HIGH,
        )
        return self.process(event, now, gate)

    def notify_device_removed(self, family_id, device_id, child_id=None, child_name=None, device_name=None, now=None):
        event = NotificationEvent(
            family_id=str(family_id),
            category=NotificationCategory.DEVICE_REMOVED,
            severity=Severity.MEDIUM,
            content={"device_id": device_id, "device_name": device_name},
            child_id=child_id,
            child_name=child_name,
            priority=Priority.HIGH,
        )
        return self.process(event, now)

    def notify_status_transition(self, family_id, child_id, previous_status, new_status, child_name=None, now=None):
        """At most one non-urgent status change per guardian and child per hour; "action" always goes out."""
        try:
            new = ChildStatus(new_status)
        except ValueError:
            raise ValidationError({"new_status": [f"Unknown status: {new_status}"]}) from None

        transition = f"{previous_status}->{new.value}"
        gate = ThrottleGate(
            check=lambda rid, _settings, at: (
                Reason.THROTTLED
                if self.throttle.should_throttle_status_transition(rid, child_id, new.value, at)
                else None
            ),
            record=lambda rid, at: self.throttle.record_status_transition(rid, child_id, transition, at),
        )
        event = NotificationEvent(
            family_id=str(family_id),
            category=NotificationCategory.STATUS_CHANGE,
            severity=STATUS_SEVERITY[new],
            content={"previous_status": previous_status, "new_status": new.value},
            child_id=str(child_id),
            child_name=child_name,
        )
        return self.process(event, now, gate)

    def notify_location_transition(
        self,
        family_id,
        child_id,
        place_id,
        place_name,
        transition,
        child_name=None,
        now=None,
    ) -> DispatchResult:
        event = NotificationEvent(
            family_id=str(family_id),
            category=NotificationCategory.LOCATION_TRANSITION,
            severity=Severity.MEDIUM,
            content={"place_id": place_id, "place_name": place_name, "transition": transition},
            child_id=str(child_id),
            child_name=child_name,
        )
        return self.process(event, now)

    def notify_time_limit_warning(self, family_id, child_id, minutes_remaining, child_name=None, now=None):
        """Warn the child (a required notice) and every guardian who opted in."""
        guardians = self.process(
            NotificationEvent(
                family_id=str(family_id),
                category=NotificationCategory.TIME_LIMIT_WARNING,
                severity=Severity.MEDIUM,
                content={"minutes_remaining": minutes_remaining},
                child_id=str(child_id),
                child_name=child_name,
            ),
            now,
        )
        child = self.process(
            NotificationEvent(
                family_id=str(family_id),
                category=NotificationCategory.TIME_LIMIT_WARNING,
                severity=Severity.MEDIUM,
                content={"minutes_remaining": minutes_remaining, "for_child": True},
                recipient_id=str(child_id),
                recipient_is_child=True,
                child_id=str(child_id),
                child_name=child_name,
            ),
            now,
        )
        guardians.outcomes.extend(child.outcomes)
        return guardians

    def notify_limit_reached(self, family_id, child_id, child_name=None, now=None) -> DispatchResult:
        """Sent at most once per guardian, child and UTC day."""
        gate = ThrottleGate(
            check=lambda rid, _settings, at: (
                Reason.ALREADY_SENT_TODAY
                if already_sent_today(self.store, rid, NotificationCategory.LIMIT_REACHED, at, child_id=child_id)
                else None
            ),
            record=lambda rid, at: None,
        )
        event = NotificationEvent(
            family_id=str(family_id),
            category=NotificationCategory.LIMIT_REACHED,
            severity=Severity.MEDIUM,
            child_id=str(child_id),
            child_name=child_name,
        )
        return self.process(event, now, gate)

    def notify_extension_request(self, family_id, child_id, request_id, minutes_requested, child_name=None, now=None):
        event = NotificationEvent(
            family_id=str(family_id),
            category=NotificationCategory.EXTENSION_REQUEST,
            severity=Severity.MEDIUM,
            content={"request_id": request_id, "minutes_requested": minutes_requested},
            child_id=str(child_id),
            child_name=child_name,
            priority=Priority.HIGH,
        )
        return self.process(event, now)

    def notify_critical_safety(
        self,
        family_id,
        category: NotificationCategory,
        params=None,
        child_id=None,
        child_name=None,
        recipient_id=None,
        now=None,
    ) -> DispatchResult:
        """Crisis, self-harm, mandatory report and emergency unlock: never suppressed, never delayed."""
        if category not in CRITICAL_SAFETY_CATEGORIES:
            raise ValidationError({"category": [f"Not a critical safety category: {category.value}"]})
        event = NotificationEvent(
            family_id=str(family_id),
            category=category,
            severity=Severity.CRITICAL,
            content=dict(params or {}),
            recipient_id=str(recipient_id) if recipient_id else None,
            bypass_quiet_hours=True,
            child_id=str(child_id) if child_id else None,
            child_name=child_name,
            priority=Priority.CRITICAL,
        )
        return self.process(event, now)
