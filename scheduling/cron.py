"""
scheduling/cron.py
------------------
HookCron – Cron Engine

Keeps one recurring trigger per job id. A trigger is an asyncio task that
sleeps until the next instant matched by the job's cron expression and then
spawns the job chain as its own task, so a slow webhook never delays the
next tick of any job.

Features
--------
- Standard 5-field cron syntax (min hour dom month dow) with `*`, ranges,
  steps and lists, plus the @hourly/@daily/... aliases
- Times are evaluated in the host's local time zone
- Re-registering a job replaces its trigger; disabled jobs have none
- stop() pauses every trigger without forgetting it; start() re-arms them

Usage
-----
    from scheduling.cron import CronEngine

    engine = CronEngine(runner=chain_runner)
    engine.register(job)        # raises ScheduleParseError on a bad expression
    engine.start()              # must run inside the event loop
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from croniter import CroniterBadDateError, croniter

from .chains import ChainRunner
from .errors import ScheduleParseError
from .models import Job
from .registry import Registry

logger = logging.getLogger("hookcron.scheduling.cron")

# ---------------------------------------------------------------------------
# Cron expression parsing
# ---------------------------------------------------------------------------

_ALIASES = {
    "@yearly":   "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly":  "0 0 1 * *",
    "@weekly":   "0 0 * * 0",
    "@daily":    "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly":   "0 * * * *",
}


def parse_schedule(expr: str) -> str:
    """Validate a cron expression and return its normalised 5-field form."""
    if not isinstance(expr, str) or not expr.strip():
        raise ScheduleParseError(str(expr), "empty expression")
    normalised = _ALIASES.get(expr.strip().lower(), expr.strip())
    fields = normalised.split()
    if len(fields) != 5:
        raise ScheduleParseError(expr, f"expected 5 fields, got {len(fields)}")
    try:
        # a well-formed expression may still never match (e.g. Feb 30)
        croniter(normalised, datetime.now()).get_next(datetime)
    except (ValueError, KeyError) as exc:
        raise ScheduleParseError(expr, str(exc)) from exc
    return " ".join(fields)


def next_fire_time(expr: str, after: datetime) -> datetime:
    """First instant strictly after *after* that matches *expr*."""
    return croniter(expr, after).get_next(datetime)


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------

@dataclass
class Trigger:
    job:      Job                            # snapshot taken at registration
    expr:     str
    task:     Optional[asyncio.Task] = None
    next_run: Optional[datetime]     = None

    def cancel(self) -> None:
        if self.task is not None:
            self.task.cancel()
            self.task = None
        self.next_run = None


class CronEngine:
    """
    Recurring trigger registry keyed by job id.

    Parameters
    ----------
    runner : ChainRunner — executes the job chain on every firing
    """

    def __init__(self, runner: ChainRunner):
        self._runner   = runner
        self._triggers: Registry[str, Trigger] = Registry("triggers")
        self._running  = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, job: Job) -> None:
        """(Re)install the trigger for *job*; disabled jobs only lose theirs."""
        expr = parse_schedule(job.schedule)

        if not job.enabled:
            self.unregister(job.id)
            logger.info("[Cron] Job %s is disabled; not scheduled", job.id)
            return

        trigger  = Trigger(job=job.snapshot(), expr=expr)
        previous = self._triggers.set(job.id, trigger)
        if previous is not None:
            previous.cancel()
        if self._running:
            self._arm(job.id, trigger)
        logger.info("[Cron] Job registered: %s  [%s]", job.id, expr)

    def unregister(self, job_id: str) -> None:
        trigger = self._triggers.pop(job_id)
        if trigger is not None:
            trigger.cancel()
            logger.info("[Cron] Job unregistered: %s", job_id)

    def is_registered(self, job_id: str) -> bool:
        return job_id in self._triggers

    def job_ids(self) -> list[str]:
        return self._triggers.keys()

    def next_run(self, job_id: str) -> Optional[datetime]:
        trigger = self._triggers.get(job_id)
        return trigger.next_run if trigger else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job_id, trigger in self._triggers.snapshot().items():
            self._arm(job_id, trigger)
        logger.info("[Cron] Engine started with %d trigger(s).", len(self._triggers))

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for trigger in self._triggers.snapshot().values():
            trigger.cancel()
        logger.info("[Cron] Engine stopped.")

    # ------------------------------------------------------------------
    # Trigger loop
    # ------------------------------------------------------------------

    def _arm(self, job_id: str, trigger: Trigger) -> None:
        trigger.task = asyncio.get_running_loop().create_task(
            self._run_trigger(job_id, trigger), name=f"cron:{job_id}",
        )

    async def _run_trigger(self, job_id: str, trigger: Trigger) -> None:
        base = datetime.now()
        while True:
            try:
                fire_at = next_fire_time(trigger.expr, base)
            except CroniterBadDateError as exc:
                logger.error("[Cron] No next run for job %s [%s]: %s", job_id, trigger.expr, exc)
                trigger.next_run = None
                return
            trigger.next_run = fire_at
            while True:
                delay = (fire_at - datetime.now()).total_seconds()
                if delay <= 0:
                    break
                await asyncio.sleep(delay)

            if self._triggers.get(job_id) is not trigger:
                return
            logger.info("[Cron] Firing job: %s", job_id)
            self._runner.spawn(self._runner.run_job(trigger.job.snapshot()), name=f"job:{job_id}")
            base = max(fire_at, datetime.now())
