"""
scheduling/store.py
-------------------
HookCron – Job repository

The engine only talks to a `JobRepository`. `JobStore` is the bundled
implementation: an in-memory job list that is loaded from, and saved to, a
YAML file of the form

    jobs:
      - id: daily-report
        name: Daily report
        schedule: "0 8 * * *"
        enabled: true
        primary:
          url: https://example.com/report
          method: GET
        reminders:
          - id: r1
            text: Standup in 5 minutes
            datetime: "2026-10-20T09:55:00+02:00"

A missing file is an empty repository. Reads hand out deep copies, so
callers may keep and mutate what they get without locking.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Protocol, Union

import yaml
from pydantic import ValidationError

from .errors import JobNotFoundError, PersistenceError, ReminderNotFoundError
from .models import Job, Reminder

logger = logging.getLogger("hookcron.scheduling.store")


class JobRepository(Protocol):
    def get_job(self, job_id: str) -> Job: ...
    def get_all_jobs(self) -> list[Job]: ...
    def upsert_job(self, job: Job) -> None: ...
    def delete_job(self, job_id: str) -> None: ...
    def delete_reminder(self, job_id: str, reminder_id: str) -> None: ...
    def persist(self) -> None: ...


class JobStore:
    """
    YAML-backed job repository.

    Parameters
    ----------
    path : str | Path | None — jobs file; None keeps everything in memory
    """

    def __init__(self, path: Union[str, Path, None] = None):
        self._path = Path(path) if path is not None else None
        self._jobs: list[Job] = []
        self._lock = threading.RLock()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Replace the in-memory jobs with the file's contents."""
        if self._path is None:
            return
        with self._lock:
            if not self._path.exists():
                self._jobs = []
                logger.info("[Store] %s does not exist; starting empty.", self._path)
                return
            try:
                data = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError) as exc:
                raise PersistenceError(f"failed to read jobs file {self._path}: {exc}") from exc
            try:
                self._jobs = [Job.from_dict(d) for d in data.get("jobs") or []]
            except (ValidationError, AttributeError) as exc:
                raise PersistenceError(f"failed to parse jobs file {self._path}: {exc}") from exc
            logger.info("[Store] Loaded %d job(s) from %s.", len(self._jobs), self._path)

    def persist(self) -> None:
        """Atomically write every job to the jobs file."""
        if self._path is None:
            return
        with self._lock:
            payload = {"jobs": [job.to_dict() for job in self._jobs]}
            try:
                text = yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".jobs_", suffix=".tmp")
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        f.write(text)
                    os.replace(tmp, self._path)
                except BaseException:
                    try:
                        os.unlink(tmp)
                    except OSError:
                        pass
                    raise
            except (OSError, yaml.YAMLError) as exc:
                raise PersistenceError(f"failed to write jobs file {self._path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> Job:
        with self._lock:
            return self._find(job_id).snapshot()

    def get_all_jobs(self) -> list[Job]:
        with self._lock:
            return [job.snapshot() for job in self._jobs]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert_job(self, job: Job) -> None:
        with self._lock:
            for i, existing in enumerate(self._jobs):
                if existing.id == job.id:
                    self._jobs[i] = job.snapshot()
                    return
            self._jobs.append(job.snapshot())

    def delete_job(self, job_id: str) -> None:
        with self._lock:
            self._jobs.remove(self._find(job_id))

    def upsert_reminder(self, job_id: str, reminder: Reminder) -> Job:
        """Replace (or append) one reminder and return the updated job."""
        with self._lock:
            job = self._find(job_id)
            for i, existing in enumerate(job.reminders):
                if existing.id == reminder.id:
                    job.reminders[i] = reminder.model_copy()
                    break
            else:
                job.reminders.append(reminder.model_copy())
            return job.snapshot()

    def delete_reminder(self, job_id: str, reminder_id: str) -> None:
        with self._lock:
            job = self._find(job_id)
            remaining = [r for r in job.reminders if r.id != reminder_id]
            if len(remaining) == len(job.reminders):
                raise ReminderNotFoundError(job_id, reminder_id)
            job.reminders = remaining

    def _find(self, job_id: str) -> Job:
        for job in self._jobs:
            if job.id == job_id:
                return job
        raise JobNotFoundError(job_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
