"""Scheduler entry points: commands an external cron invokes.

Each is idempotent and safe to run redundantly: digests only drain
unprocessed items, the delayed queue only due pending items, and expiry
only windows that have already ended.
"""

from datetime import datetime

import structlog
from protean.fields import DateTime
from protean.utils.mixins import handle

from safety_notifications.context import current_context
from safety_notifications.delivery.delayed import DelayedQueueProcessor
from safety_notifications.digest.service import DigestRunSummary
from safety_notifications.domain import safety_notifications
from safety_notifications.family.family import Family
from safety_notifications.pipeline import NotificationPipeline
from safety_notifications.utils.timeutil import as_utc, utc_now

logger = structlog.get_logger(__name__)


@safety_notifications.command(part_of="Family")
class RunHourlyDigest:
    as_of: DateTime()  # Optional: process as of this time (defaults to now)


@safety_notifications.command(part_of="Family")
class RunDailyDigest:
    as_of: DateTime()


@safety_notifications.command(part_of="Family")
class ProcessDelayedQueue:
    as_of: DateTime()


@safety_notifications.command(part_of="Family")
class ExpireStealthWindows:
    as_of: DateTime()


def _as_of(command) -> datetime:
    return as_utc(command.as_of) if command.as_of else utc_now()


def _digest_summary(summary: DigestRunSummary) -> dict:
    return {
        "digest_type": summary.digest_type.value,
        "recipients": len(summary.results) + len(summary.errors),
        "sent": summary.sent,
        "failed": summary.failed,
    }


@safety_notifications.command_handler(part_of=Family)
class SchedulerHandler:
    @handle(RunHourlyDigest)
    def run_hourly_digest(self, command: RunHourlyDigest):
        summary = NotificationPipeline(current_context()).digest.run_hourly(_as_of(command))
        logger.info("Hourly digest run complete", **_digest_summary(summary))
        return _digest_summary(summary)

    @handle(RunDailyDigest)
    def run_daily_digest(self, command: RunDailyDigest):
        summary = NotificationPipeline(current_context()).digest.run_daily(_as_of(command))
        logger.info("Daily digest run complete", **_digest_summary(summary))
        return _digest_summary(summary)

    @handle(ProcessDelayedQueue)
    def process_delayed_queue(self, command: ProcessDelayedQueue):
        pipeline = NotificationPipeline(current_context())
        processor = DelayedQueueProcessor(pipeline.store, pipeline.orchestrator, pipeline.stealth)
        return processor.process(_as_of(command))

    @handle(ExpireStealthWindows)
    def expire_stealth_windows(self, command: ExpireStealthWindows):
        return NotificationPipeline(current_context()).stealth.expire_windows(_as_of(command))
