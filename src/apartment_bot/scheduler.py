"""Cron-style polling schedule, one job per source."""

import logging
from typing import Awaitable, Callable, Dict, Iterable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

JOB_DEFAULTS = {
    "coalesce": True,  # run only the latest if many were missed
    "max_instances": 1,  # never overlap two runs of the same source
    "misfire_grace_time": 60,
}


def build_scheduler(
    schedules: Dict[str, str],
    sources: Iterable[str],
    run_source: Callable[[str], Awaitable],
    timezone: str = "Europe/Berlin",
) -> AsyncIOScheduler:
    """
    Build an AsyncIOScheduler with one cron job per source.

    Each job awaits run_source(name) as its own task on the running event
    loop, so sources poll independently. Sources without a schedule are
    skipped with a warning. The scheduler is returned unstarted.
    """
    scheduler = AsyncIOScheduler(timezone=timezone, job_defaults=JOB_DEFAULTS)

    for source in sources:
        expression = schedules.get(source)
        if not expression:
            logger.warning(f"No schedule configured for {source} - skipping")
            continue

        scheduler.add_job(
            run_source,
            CronTrigger.from_crontab(expression, timezone=timezone),
            args=[source],
            id=f"poll-{source}",
            name=f"Poll {source}",
            replace_existing=True,
        )
        logger.info(f"Scheduled {source} check: {expression} ({timezone})")

    return scheduler
