"""
scheduling/manager.py
---------------------
HookCron – Scheduling Manager

Central coordinator that owns the scheduling subsystems:
  - CronEngine       (recurring cron triggers, one per job)
  - ReminderManager  (one-shot reminder timers, one per job/reminder pair)
  - ChainRunner      (primary → secondary webhook execution)
  - OutputCache      (last primary response per job)

and exposes the entry points used by the management API.

Usage
-----
    import asyncio
    from scheduling.store   import JobStore
    from scheduling.manager import SchedulingManager

    async def main():
        store = JobStore("config.yaml")
        store.load()

        sched = SchedulingManager(repository=store)
        sched.load_jobs()
        sched.start()
        ...
        await sched.shutdown()

    asyncio.run(main())
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .chains    import ChainRunner
from .cron      import CronEngine
from .models    import Job
from .registry  import OutputCache
from .reminders import ReminderManager
from .store     import JobRepository
from .webhooks  import DEFAULT_TIMEOUT, WebhookExecutor

logger = logging.getLogger("hookcron.scheduling.manager")


class SchedulingManager:
    """
    Owns the cron engine and the reminder manager and keeps them in step.

    Parameters
    ----------
    repository      : JobRepository
    default_timeout : float — webhook timeout when a config sets none (default: 30)
    max_concurrent  : int   — bound on in-flight executions (default: 0, unbounded)
    transport       : httpx.AsyncBaseTransport | None — passed to the webhook executor
    """

    def __init__(
        self,
        repository: JobRepository,
        default_timeout: float = DEFAULT_TIMEOUT,
        max_concurrent: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._repository = repository
        self.outputs     = OutputCache()
        self.executor    = WebhookExecutor(default_timeout=default_timeout, transport=transport)
        self.runner      = ChainRunner(self.executor, self.outputs, max_concurrent=max_concurrent)
        self.cron        = CronEngine(self.runner)
        self.reminders   = ReminderManager(self.runner, repository)

    # ------------------------------------------------------------------
    # Job control
    # ------------------------------------------------------------------

    def add_or_update_job(self, job: Job) -> None:
        """
        Validate *job* and (re)install its trigger and reminder timers.

        Raises ScheduleParseError, in which case nothing about the job's
        current registration changes.
        """
        self.cron.register(job)
        self.reminders.cancel_all(job.id)
        if not job.enabled:
            return
        for reminder in job.reminders:
            self.reminders.schedule(job, reminder)

    def remove_job(self, job_id: str) -> None:
        self.cron.unregister(job_id)
        self.reminders.cancel_all(job_id)
        self.outputs.clear(job_id)
        logger.info("[Scheduling] Job removed: %s", job_id)

    def test_job(self, job_id: str) -> None:
        """Run *job_id*'s chain once, now, in the background.

        Raises JobNotFoundError when the repository does not know the job.
        """
        job = self._repository.get_job(job_id)
        logger.info("[Scheduling] Test run requested for job %s", job_id)
        self.runner.spawn(self.runner.run_job(job), name=f"test:{job_id}")

    def load_jobs(self) -> int:
        """Register every job in the repository; returns how many succeeded."""
        loaded = 0
        for job in self._repository.get_all_jobs():
            try:
                self.add_or_update_job(job)
                loaded += 1
            except ValueError as exc:
                logger.error("[Scheduling] Failed to load job %s: %s", job.id, exc)
        logger.info("[Scheduling] Loaded %d job(s).", loaded)
        return loaded

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin honouring registered triggers. Call from inside the event loop."""
        self.cron.start()
        self.reminders.start()
        logger.info("[Scheduling] Started.")

    def stop(self) -> None:
        """Stop all firing; registrations stay in memory for the next start()."""
        self.cron.stop()
        self.reminders.stop()
        logger.info("[Scheduling] Stopped.")

    async def shutdown(self) -> None:
        """stop() and wait for in-flight executions to finish."""
        self.stop()
        await self.runner.drain()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> dict:
        return {
            "running":           self.cron.running,
            "cron_jobs":         len(self.cron.job_ids()),
            "pending_reminders": len(self.reminders.pending()),
            "cached_outputs":    len(self.outputs),
            "in_flight":         self.runner.in_flight,
        }
