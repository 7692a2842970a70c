"""
Retry policy — eligibility and the status transitions of a single job.

    PENDING ──claim──▶ PROCESSING ──Delivered / Skipped──▶ SENT
                            │
                            └──Failed──▶ retry_count + 1
                                           ├─ < max_retries  → PENDING (next run)
                                           └─ >= max_retries → FAILED

SENT and FAILED are terminal.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from models.schemas import NotificationJob, NotificationStatus


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")

    def is_eligible(self, job: NotificationJob) -> bool:
        return job.status == NotificationStatus.PENDING and job.retry_count < self.max_retries

    def is_exhausted(self, retry_count: int) -> bool:
        return retry_count >= self.max_retries

    def on_success(self, now: datetime = None) -> dict[str, Any]:
        """Fields for a delivered or skipped job."""
        return {
            "status": NotificationStatus.SENT,
            "processed_at": now or datetime.now(timezone.utc),
        }

    def on_failure(self, job: NotificationJob, error: str, now: datetime = None) -> dict[str, Any]:
        """Fields for a failed attempt; FAILED once the budget is spent, else back to PENDING."""
        retry_count = job.retry_count + 1
        if self.is_exhausted(retry_count):
            return {
                "status": NotificationStatus.FAILED,
                "retry_count": retry_count,
                "error": error,
                "processed_at": now or datetime.now(timezone.utc),
            }
        return {
            "status": NotificationStatus.PENDING,
            "retry_count": retry_count,
            "error": error,
        }
