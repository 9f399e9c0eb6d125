"""Digest batching: consolidate queued low/medium events into one message per recipient.

A digest is at-most-once: every drained item is flagged processed after
the attempt whether or not it was delivered, and newer events accumulate
into the next cycle. The daily run also sweeps hourly items for
recipients whose hourly pass did not run that day.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

import structlog

from safety_notifications.categories import NotificationCategory, Severity
from safety_notifications.delivery.endpoint import tokens_for
from safety_notifications.delivery.log import Outcome, record_history
from safety_notifications.delivery.orchestrator import DeliveryOrchestrator, DeliveryRequest, DeliveryResult
from safety_notifications.digest.grouping import build_digest_summary, group_digest_items
from safety_notifications.digest.item import DigestQueueItem, DigestType
from safety_notifications.preference.loader import PreferenceLoader
from safety_notifications.reasons import Reason
from safety_notifications.stealth.window import StealthWindowManager
from safety_notifications.store import Store
from safety_notifications.templates import build_content
from safety_notifications.utils.timeutil import as_utc, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class DigestResult:
    recipient_id: str
    digest_type: DigestType
    item_count: int = 0
    sent: bool = False
    reason: Reason | None = None
    delivery: DeliveryResult | None = None


@dataclass
class DigestRunSummary:
    digest_type: DigestType
    results: list[DigestResult] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def sent(self) -> int:
        return sum(1 for r in self.results if r.sent)

    @property
    def failed(self) -> int:
        quiet = (Reason.NO_PENDING_ITEMS, Reason.SUPPRESSED_STEALTH)
        return sum(1 for r in self.results if not r.sent and r.reason not in quiet) + len(self.errors)


class DigestService:
    """Queues digest items and drains them into one consolidated notification per recipient."""

    def __init__(
        self,
        store: Store,
        orchestrator: DeliveryOrchestrator,
        loader: PreferenceLoader,
        stealth: StealthWindowManager | None = None,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.loader = loader
        self.stealth = stealth

    def enqueue(
        self,
        recipient_id,
        digest_type: DigestType,
        severity: Severity,
        category: NotificationCategory,
        now: datetime | None = None,
        family_id=None,
        source_event_id=None,
        child_id=None,
        child_name=None,
    ) -> DigestQueueItem:
        """Park one low or medium event for the next digest of ``digest_type``."""
        item = DigestQueueItem.queue(
            recipient_id,
            digest_type,
            severity,
            category,
            now or utc_now(),
            family_id=family_id,
            source_event_id=source_event_id,
            child_id=child_id,
            child_name=child_name,
        )
        self.store.add(item)
        return item

    def pending_items(self, recipient_id, digest_type: DigestType) -> list[DigestQueueItem]:
        items = self.store.filter(
            DigestQueueItem,
            recipient_id=str(recipient_id),
            digest_type=digest_type.value,
            processed=False,
        )
        return sorted(items, key=lambda item: as_utc(item.queued_at))

    def _has_destination(self, recipient_id) -> bool:
        if tokens_for(self.store, recipient_id):
            return True
        view = self.loader.channels_for(recipient_id, NotificationCategory.FLAG_DIGEST)
        return bool(view.verified_email)

    def _suppressed(self, recipient_id, items, now: datetime) -> bool:
        """Items queued before a safety window opened are still held back from shielded recipients."""
        if self.stealth is None:
            return False
        family_ids = {str(item.family_id) for item in items if item.family_id}
        return any(
            self.stealth.should_suppress(family_id, NotificationCategory.FLAG_DIGEST, recipient_id, now=now)
            for family_id in sorted(family_ids)
        )

    def _mark_processed(self, items, now: datetime):
        for item in items:
            item.mark_processed(now)
            self.store.add(item)

    def process_user_digest(self, recipient_id, digest_type: DigestType, now: datetime | None = None) -> DigestResult:
        """Drain one recipient's pending items into a single notification.

        Items are marked processed whatever the outcome: withheld by a safety
        window, undeliverable or failed.
        """
        now = now or utc_now()
        result = DigestResult(recipient_id=str(recipient_id), digest_type=digest_type)

        items = self.pending_items(recipient_id, digest_type)
        if not items:
            result.reason = Reason.NO_PENDING_ITEMS
            return result
        result.item_count = len(items)
        notification_id = str(uuid4())

        if self._suppressed(recipient_id, items, now):
            self._mark_processed(items, now)
            result.reason = Reason.SUPPRESSED_STEALTH
            return result

        if not self._has_destination(recipient_id):
            self._mark_processed(items, now)
            record_history(
                self.store,
                notification_id,
                recipient_id,
                NotificationCategory.FLAG_DIGEST,
                Outcome.FAILED,
                now,
                reason=Reason.NO_TOKENS,
            )
            result.reason = Reason.NO_TOKENS
            logger.warning("Digest has no destination", recipient_id=str(recipient_id), items=len(items))
            return result

        summary = build_digest_summary(group_digest_items(items))
        content = build_content(NotificationCategory.FLAG_DIGEST, summary.as_context(digest_type.value))
        request = DeliveryRequest(
            notification_id=notification_id,
            recipient_id=str(recipient_id),
            family_id=str(items[0].family_id) if items[0].family_id else None,
            category=NotificationCategory.FLAG_DIGEST,
            severity=summary.max_severity,
            title=content["title"],
            body=content["body"],
            data=content["data"],
        )

        try:
            delivery = self.orchestrator.deliver(request, now)
        finally:
            self._mark_processed(items, now)

        record_history(
            self.store,
            notification_id,
            recipient_id,
            NotificationCategory.FLAG_DIGEST,
            Outcome.SENT if delivery.sent else Outcome.FAILED,
            now,
            reason=delivery.reason,
            severity=summary.max_severity,
            title=request.title,
            channels=delivery.delivered_channels,
        )
        result.delivery = delivery
        result.sent = delivery.sent
        result.reason = delivery.reason
        logger.info(
            "Digest processed",
            recipient_id=str(recipient_id),
            digest_type=digest_type.value,
            items=len(items),
            sent=delivery.sent,
        )
        return result

    def _recipients_with_pending(self, digest_type: DigestType) -> list[str]:
        items = self.store.filter(DigestQueueItem, digest_type=digest_type.value, processed=False)
        return sorted({str(item.recipient_id) for item in items})

    def _run(self, summary: DigestRunSummary, recipients, digest_type: DigestType, now: datetime):
        for recipient_id in recipients:
            try:
                summary.results.append(self.process_user_digest(recipient_id, digest_type, now))
            except Exception as exc:
                logger.error(
                    "Digest failed for recipient",
                    recipient_id=recipient_id,
                    digest_type=digest_type.value,
                    error=str(exc),
                )
                summary.errors[recipient_id] = str(exc)

    def run_hourly(self, now: datetime | None = None) -> DigestRunSummary:
        """Drain hourly items for every recipient with any pending."""
        now = now or utc_now()
        summary = DigestRunSummary(digest_type=DigestType.HOURLY)
        self._run(summary, self._recipients_with_pending(DigestType.HOURLY), DigestType.HOURLY, now)
        return summary

    def run_daily(self, now: datetime | None = None) -> DigestRunSummary:
        """Drain daily items, then sweep hourly items the hourly pass missed today."""
        now = now or utc_now()
        summary = DigestRunSummary(digest_type=DigestType.DAILY)
        self._run(summary, self._recipients_with_pending(DigestType.DAILY), DigestType.DAILY, now)

        missed = [r for r in self._recipients_with_pending(DigestType.HOURLY) if not self._hourly_ran_today(r, now)]
        self._run(summary, missed, DigestType.HOURLY, now)
        return summary

    def _hourly_ran_today(self, recipient_id, now: datetime) -> bool:
        processed = self.store.filter(
            DigestQueueItem,
            recipient_id=str(recipient_id),
            digest_type=DigestType.HOURLY.value,
            processed=True,
        )
        today = now.date()
        return any(item.processed_at and as_utc(item.processed_at).date() == today for item in processed)
