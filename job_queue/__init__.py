"""
Notification queue — batch processing of queued horse notifications.

The processor is a run-to-completion job started by an external scheduler;
it drains every eligible job and exits.
"""
from job_queue.payloads import PayloadError, build_payload
from job_queue.processor import NotificationQueueProcessor
from job_queue.retry_policy import RetryPolicy

__all__ = ["NotificationQueueProcessor", "RetryPolicy", "PayloadError", "build_payload"]
