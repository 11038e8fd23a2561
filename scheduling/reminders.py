"""
scheduling/reminders.py
-----------------------
HookCron – One-shot reminders

A reminder belongs to a job and fires once at an absolute instant. Firing
sends the job's primary webhook with `{{REMINDER}}` in its body replaced by
the reminder text, optionally chains the job's secondary webhook, and then
deletes the reminder from the job record and persists the repository,
whatever the webhook calls returned.

Reminders whose instant has already passed when they are scheduled are
skipped. They stay in the job record until something else removes them.

Usage
-----
    from scheduling.reminders import ReminderManager

    reminders = ReminderManager(runner=chain_runner, repository=store)
    reminders.schedule(job, job.reminders[0])
    reminders.start()           # must run inside the event loop
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from .chains import ChainRunner
from .errors import JobNotFoundError, JSONParseError, PersistenceError, ReminderNotFoundError
from .extract import extract_variables, has_non_empty
from .models import Job, Reminder, WebhookConfig
from .registry import Registry
from .templates import REMINDER_VAR, JsonValue, render

if TYPE_CHECKING:
    from .store import JobRepository

logger = logging.getLogger("hookcron.scheduling.reminders")

# (job id, reminder id)
ReminderKey = tuple[str, str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def build_secondary_body(
    secondary: WebhookConfig,
    reminder_text: str,
    response: str,
) -> Optional[str]:
    """
    Body for the secondary call of a reminder firing, or None when the
    `only_if_vars_non_empty` gate suppresses the call.
    """
    extracted: dict[str, JsonValue] = {}
    if response and secondary.jq_selectors:
        try:
            extracted = extract_variables(response, secondary.jq_selectors)
        except JSONParseError as exc:
            logger.warning("[Reminders] Variable extraction failed: %s", exc)

    if secondary.only_if_vars_non_empty and secondary.jq_selectors and not has_non_empty(extracted):
        logger.info("[Reminders] Selectors produced no values; secondary skipped")
        return None

    variables: dict[str, JsonValue] = dict(extracted)
    variables.setdefault("message", response or reminder_text)
    variables[REMINDER_VAR] = reminder_text

    if secondary.body_template:
        return render(secondary.body_template, variables)
    if secondary.body:
        return render(secondary.body, variables)
    if response:
        return response
    return json.dumps({"reminder": reminder_text, "message": reminder_text}, ensure_ascii=False)


@dataclass
class ReminderTimer:
    job:      Job                                # snapshot of the owning job
    reminder: Reminder
    handle:   Optional[asyncio.TimerHandle] = None

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()
            self.handle = None


class ReminderManager:
    """
    One-shot timer registry keyed by (job id, reminder id).

    Parameters
    ----------
    runner     : ChainRunner   — spawns the firing and performs webhook calls
    repository : JobRepository — reminders are deleted from it after firing
    """

    def __init__(self, runner: ChainRunner, repository: "JobRepository"):
        self._runner     = runner
        self._repository = repository
        self._timers:    Registry[ReminderKey, ReminderTimer] = Registry("reminders")
        self._running    = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def schedule(self, job: Job, reminder: Reminder) -> bool:
        """Install a timer for *reminder*. Returns False if it is already due."""
        delay = (reminder.fire_at - _now()).total_seconds()
        if delay <= 0:
            logger.info("[Reminders] Reminder %s of job %s is in the past, skipping", reminder.id, job.id)
            return False

        key      = (job.id, reminder.id)
        timer    = ReminderTimer(job=job.snapshot(), reminder=reminder.model_copy())
        previous = self._timers.set(key, timer)
        if previous is not None:
            previous.cancel()
        if self._running:
            self._arm(key, timer)
        logger.info("[Reminders] Scheduled %s for job %s in %.0fs", reminder.id, job.id, delay)
        return True

    def cancel(self, job_id: str, reminder_id: str) -> None:
        timer = self._timers.pop((job_id, reminder_id))
        if timer is not None:
            timer.cancel()
            logger.info("[Reminders] Cancelled %s for job %s", reminder_id, job_id)

    def cancel_all(self, job_id: str) -> None:
        timers = self._timers.pop_where(lambda key: key[0] == job_id)
        for timer in timers:
            timer.cancel()
        if timers:
            logger.info("[Reminders] Cancelled %d reminder(s) for job %s", len(timers), job_id)

    def is_scheduled(self, job_id: str, reminder_id: str) -> bool:
        return (job_id, reminder_id) in self._timers

    def pending(self) -> list[ReminderKey]:
        return self._timers.keys()

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
        for key, timer in self._timers.snapshot().items():
            self._arm(key, timer)
        logger.info("[Reminders] Manager started with %d timer(s).", len(self._timers))

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for timer in self._timers.snapshot().values():
            timer.cancel()
        logger.info("[Reminders] Manager stopped.")

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _arm(self, key: ReminderKey, timer: ReminderTimer) -> None:
        delay = max(0.0, (timer.reminder.fire_at - _now()).total_seconds())
        timer.handle = asyncio.get_running_loop().call_later(delay, self._on_timer, key, timer)

    def _on_timer(self, key: ReminderKey, timer: ReminderTimer) -> None:
        timer.handle = None
        if not self._running:
            return
        if _now() < timer.reminder.fire_at:
            # the loop clock may run slightly ahead of the wall clock
            self._arm(key, timer)
            return
        if not self._timers.pop_if(key, timer):
            return
        self._runner.spawn(
            self.fire(timer.job, timer.reminder),
            name=f"reminder:{key[0]}:{key[1]}",
        )

    # ------------------------------------------------------------------
    # Firing
    # ------------------------------------------------------------------

    async def fire(self, job: Job, reminder: Reminder) -> None:
        logger.info("[Reminders] Firing %s for job %s: %r", reminder.id, job.name or job.id, reminder.text)
        try:
            await self._execute(job, reminder)
        finally:
            self._cleanup(job.id, reminder.id)

    async def _execute(self, job: Job, reminder: Reminder) -> None:
        primary = job.primary
        if primary.body:
            primary = primary.model_copy(
                update={"body": render(primary.body, {REMINDER_VAR: reminder.text})}
            )

        response = await self._runner.call(f"Reminder primary ({job.id}/{reminder.id})", primary)
        response = response or ""

        secondary = job.secondary
        if secondary is None:
            return
        if not secondary.enabled:
            logger.info("[Reminders] Secondary webhook disabled for reminder %s", reminder.id)
            return

        body = build_secondary_body(secondary, reminder.text, response)
        if body is None:
            return
        await self._runner.call(
            f"Reminder secondary ({job.id}/{reminder.id})",
            secondary.model_copy(update={"body": body}),
        )

    def _cleanup(self, job_id: str, reminder_id: str) -> None:
        try:
            self._repository.delete_reminder(job_id, reminder_id)
        except (JobNotFoundError, ReminderNotFoundError) as exc:
            logger.warning("[Reminders] Cleanup of %s: %s", reminder_id, exc)
            return
        try:
            self._repository.persist()
        except PersistenceError as exc:
            logger.error("[Reminders] Failed to save after deleting reminder %s: %s", reminder_id, exc)
            return
        logger.info("[Reminders] Deleted reminder %s from job %s", reminder_id, job_id)
