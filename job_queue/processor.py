"""
Notification Queue Processor — drains the notification queue in batches.

One run, start to finish:
  1. Recover stale PROCESSING claims left behind by a crashed run
  2. Fetch up to batch_size eligible jobs, oldest first
  3. For each: atomic claim → build payload → sender → record outcome → delay
  4. Repeat from 2 until a fetch comes back empty
  5. Return a ProcessorReport

Jobs are attempted strictly one at a time. A keyset cursor over
(created_at, id) keeps a job that failed earlier in the run from being
picked up again before the next run.

Usage:
    processor = NotificationQueueProcessor(store, sender)
    report = await processor.run()
"""
from __future__ import annotations

import asyncio
import structlog
import time
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from channels.base import NotificationSender
from config.settings import Settings, get_settings
from database.store_base import BaseNotificationStore
from job_queue.payloads import build_payload
from job_queue.retry_policy import RetryPolicy
from models.schemas import (
    Delivered, DeliveryOutcome, Failed, NotificationJob, NotificationStatus,
    ProcessorReport, Skipped,
)

logger = structlog.get_logger()

SleepFn = Callable[[float], Awaitable[None]]

BATCH_SIZE = 50
MAX_RETRIES = 3
DELAY_BETWEEN_EMAILS_MS = 1000


class NotificationQueueProcessor:
    """
    Batch consumer over a BaseNotificationStore.

    Sender failures (reported or raised) are contained per job and turned
    into retry-count increments. Store errors propagate and end the run.
    """

    def __init__(
        self,
        store: BaseNotificationStore,
        sender: NotificationSender,
        batch_size: int = BATCH_SIZE,
        max_retries: int = MAX_RETRIES,
        delay_seconds: float = DELAY_BETWEEN_EMAILS_MS / 1000,
        sleep: Optional[SleepFn] = None,
        stale_claim_minutes: int = 60,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.sender = sender
        self.batch_size = batch_size
        self.policy = RetryPolicy(max_retries=max_retries)
        self.delay_seconds = delay_seconds
        self.sleep = sleep or asyncio.sleep
        self.stale_claim_minutes = stale_claim_minutes

    @classmethod
    def from_settings(
        cls,
        store: BaseNotificationStore,
        sender: NotificationSender,
        settings: Settings = None,
        sleep: Optional[SleepFn] = None,
    ) -> "NotificationQueueProcessor":
        queue = (settings or get_settings()).queue
        return cls(
            store,
            sender,
            batch_size=queue.batch_size,
            max_retries=queue.max_retries,
            delay_seconds=queue.delay_between_emails_ms / 1000,
            sleep=sleep,
            stale_claim_minutes=queue.stale_claim_minutes,
        )

    @property
    def max_retries(self) -> int:
        return self.policy.max_retries

    # ──────────────────────────────────────────────────────────
    #  Run
    # ──────────────────────────────────────────────────────────

    async def run(self) -> ProcessorReport:
        report = ProcessorReport()
        started = time.monotonic()
        logger.info("notification_processor_started",
                    batch_size=self.batch_size, max_retries=self.max_retries)

        report.reclaimed = await self.reclaim_stale_claims()

        cursor: Optional[tuple[datetime, str]] = None
        while True:
            batch = await self.store.fetch_eligible_batch(
                self.batch_size, self.max_retries, after=cursor,
            )
            if not batch:
                logger.info("notification_queue_drained")
                break

            report.batches.append(len(batch))
            logger.info("notification_batch_fetched", size=len(batch), batch=len(report.batches))

            for job in batch:
                await self._process_job(job, report)
            cursor = batch[-1].cursor

        report.duration = round(time.monotonic() - started, 2)
        logger.info("notification_processor_completed",
                    duration=report.duration,
                    processed=report.processed,
                    sent=report.sent,
                    skipped=report.skipped,
                    failed=report.failed,
                    reclaimed=report.reclaimed)
        return report

    async def reclaim_stale_claims(self) -> int:
        """
        Treat PROCESSING jobs claimed more than stale_claim_minutes ago as a
        crashed attempt: one retry is spent, then the job goes back to
        PENDING or, with the budget exhausted, to FAILED.
        """
        if self.stale_claim_minutes <= 0:
            return 0

        threshold = datetime.now(timezone.utc) - timedelta(minutes=self.stale_claim_minutes)
        reclaimed = 0
        for job in await self.store.find_stale_claims(threshold):
            fields = self.policy.on_failure(job, "Processing interrupted before completion")
            if await self.store.update_status(
                job.id, expected_status=NotificationStatus.PROCESSING, **fields,
            ):
                reclaimed += 1
                logger.warning("notification_claim_reclaimed",
                               job_id=job.id, status=fields["status"].value,
                               retry_count=fields["retry_count"])
        if reclaimed:
            logger.info("stale_claims_reclaimed", count=reclaimed)
        return reclaimed

    # ──────────────────────────────────────────────────────────
    #  Single job
    # ──────────────────────────────────────────────────────────

    async def _process_job(self, job: NotificationJob, report: ProcessorReport):
        if not await self.store.claim(job.id, self.max_retries):
            logger.info("notification_claim_lost", job_id=job.id)
            return

        report.processed += 1
        try:
            outcome = await self._deliver(job)
        except Exception as e:
            outcome = Failed(str(e) or type(e).__name__)
            logger.error("notification_delivery_error",
                         job_id=job.id, error_type=type(e).__name__, error=str(e))

        await self._record(job, outcome, report)
        await self.sleep(self.delay_seconds)

    async def _deliver(self, job: NotificationJob) -> DeliveryOutcome:
        notification_type, payload = build_payload(job)
        result = await self.sender.send_horse_notification(
            notification_type, job.horse_id, payload,
        )
        if result.trainer is not None:
            logger.debug("trainer_notification_outcome",
                         job_id=job.id, outcome=type(result.trainer).__name__,
                         reason=getattr(result.trainer, "reason", None))
        return result.owner

    async def _record(self, job: NotificationJob, outcome: DeliveryOutcome, report: ProcessorReport):
        if isinstance(outcome, (Delivered, Skipped)):
            fields = self.policy.on_success()
        elif isinstance(outcome, Failed):
            fields = self.policy.on_failure(job, outcome.reason)
        else:
            raise TypeError(f"Unknown delivery outcome: {outcome!r}")

        written = await self.store.update_status(
            job.id, expected_status=NotificationStatus.PROCESSING, **fields,
        )
        if not written:
            logger.warning("notification_status_not_written", job_id=job.id)
            return

        if isinstance(outcome, Delivered):
            report.sent += 1
            logger.info("notification_sent", job_id=job.id, type=job.type,
                        horse=job.horse_name, message_id=outcome.message_id)
        elif isinstance(outcome, Skipped):
            report.skipped += 1
            logger.info("notification_skipped", job_id=job.id, type=job.type,
                        horse=job.horse_name, reason=outcome.reason)
        elif fields["status"] == NotificationStatus.FAILED:
            report.failed += 1
            logger.error("notification_failed", job_id=job.id, type=job.type,
                         retry_count=fields["retry_count"], error=outcome.reason)
        else:
            logger.warning("notification_retry_scheduled", job_id=job.id, type=job.type,
                           retry_count=fields["retry_count"], error=outcome.reason)
