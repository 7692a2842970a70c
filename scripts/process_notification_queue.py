#!/usr/bin/env python3
"""
Notification Queue Processor — delivers pending horse notification emails.

Run once a day by the scheduler (GitHub Actions cron, 05:00 UTC). Drains
every eligible job, prints the run summary as JSON and exits.

Usage:
    python scripts/process_notification_queue.py
    process-notification-queue              # installed console script

Environment:
    PROD_DATABASE_URL / DATABASE_URL   required; the production URL wins
    RESEND_API_KEY                     without it every delivery fails
    NOTIFIER_CONFIG                    optional YAML settings file

Exit codes:
    0  the run completed (individual jobs may still have failed)
    1  missing configuration, or an error aborted the run
"""
from __future__ import annotations

import asyncio
import json
import os
import sys

# Ensure app root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog
from dotenv import load_dotenv

from config.settings import (
    ConfigurationError, Settings, database_label, load_settings, require_database_url,
)
from models.schemas import ProcessorReport

logger = structlog.get_logger()


async def process_notification_queue(
    settings: Settings,
    sleep=None,
) -> ProcessorReport:
    """Run the processor against the configured database and Resend account."""
    from channels.email_adapter import EmailAdapter
    from channels.horse_notifier import HorseNotifier
    from database.session import close_db
    from database.store_factory import create_store
    from job_queue.processor import NotificationQueueProcessor

    store, directory = create_store("sql")
    email = EmailAdapter(settings.email)
    sender = HorseNotifier(directory, email, settings.email.app_url)
    processor = NotificationQueueProcessor.from_settings(
        store, sender, settings=settings, sleep=sleep,
    )
    try:
        return await processor.run()
    finally:
        await email.close()
        await close_db()


def main() -> int:
    load_dotenv()
    settings = load_settings()

    try:
        url = require_database_url(settings)
    except ConfigurationError as e:
        logger.error("notification_processor_config_error", error=str(e))
        return 1

    logger.info("notification_processor_database", database=database_label(url))

    try:
        report = asyncio.run(process_notification_queue(settings))
    except Exception as e:
        logger.exception("notification_processor_fatal", error=str(e))
        return 1

    print(json.dumps(report.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
