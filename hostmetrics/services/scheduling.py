"""Interval scheduling built on APScheduler's asyncio scheduler."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.events import EVENT_JOB_MAX_INSTANCES
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger


def create_interval_scheduler(
    job: Callable[[], Awaitable[None]],
    interval: float,
    job_id: str,
    name: str,
    initial_delay: float = 0.0,
    on_skipped: Optional[Callable[[], None]] = None
) -> AsyncIOScheduler:
    """
    Create (but do not start) a scheduler running one recurring job.

    A tick that fires while the previous run is still in progress is
    skipped rather than queued (``max_instances=1``), and missed ticks are
    coalesced into one.

    Must be called from inside the running event loop.

    Args:
        job: Coroutine function run on every tick
        interval: Seconds between ticks
        job_id: Scheduler job id
        name: Human-readable job name
        initial_delay: Seconds before the first tick
        on_skipped: Called whenever a tick is skipped because of overlap

    Returns:
        AsyncIOScheduler: Configured scheduler
    """
    scheduler = AsyncIOScheduler(
        event_loop=asyncio.get_running_loop(),
        timezone=timezone.utc
    )

    first_run = datetime.now(timezone.utc) + timedelta(seconds=initial_delay)
    scheduler.add_job(
        job,
        trigger=IntervalTrigger(seconds=interval, timezone=timezone.utc),
        id=job_id,
        name=name,
        max_instances=1,  # Prevent overlapping executions
        coalesce=True,  # If missed, run once
        misfire_grace_time=None,
        next_run_time=first_run
    )

    if on_skipped is not None:
        def _listener(event):
            if event.job_id == job_id:
                on_skipped()

        scheduler.add_listener(_listener, EVENT_JOB_MAX_INSTANCES)

    return scheduler


def remove_job(scheduler: Optional[AsyncIOScheduler], job_id: str) -> None:
    """Stop new ticks from firing; a run already in progress keeps going."""
    if scheduler is None or not scheduler.running:
        return
    if scheduler.get_job(job_id) is not None:
        scheduler.remove_job(job_id)


def shutdown_scheduler(scheduler: Optional[AsyncIOScheduler]) -> None:
    """Stop the scheduler. Runs still in progress are cancelled, so wait for them first."""
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
