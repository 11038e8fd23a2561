"""
scheduling/api.py
-----------------
HookCron – Management API

JSON endpoints for creating, editing, deleting and test-firing jobs and for
editing a job's reminders:

    GET    /api/jobs                             list jobs
    POST   /api/jobs                             create or replace a job
    GET    /api/jobs/{job_id}                    fetch one job
    PUT    /api/jobs/{job_id}                    replace a job (ids must match)
    DELETE /api/jobs/{job_id}                    delete a job
    POST   /api/jobs/test/{job_id}               fire a job once, now
    PUT    /api/reminders/{job_id}/{reminder_id} replace one reminder
    DELETE /api/reminders/{job_id}/{reminder_id} delete one reminder
    GET    /api/health                           scheduler status

A job is validated by the scheduler before it is stored, so a bad cron
expression is rejected with 400 and never reaches the jobs file.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from aiohttp import web
from pydantic import ValidationError

from .errors import (
    JobNotFoundError,
    PersistenceError,
    ReminderNotFoundError,
    ScheduleParseError,
)
from .manager import SchedulingManager
from .models import Job, Reminder
from .store import JobStore

logger = logging.getLogger("hookcron.scheduling.api")


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


class ManagementServer:
    """
    aiohttp application around a SchedulingManager and its JobStore.

    Parameters
    ----------
    manager : SchedulingManager
    store   : JobStore
    host    : str — bind address (default: 0.0.0.0)
    port    : int — listen port (default: 8080)
    """

    def __init__(
        self,
        manager: SchedulingManager,
        store: JobStore,
        host: str = "0.0.0.0",
        port: int = 8080,
    ):
        self._manager = manager
        self._store   = store
        self._host    = host
        self._port    = port
        self._runner: Optional[web.AppRunner] = None

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/health", self._handle_health)
        app.router.add_get("/api/jobs", self._handle_list_jobs)
        app.router.add_post("/api/jobs", self._handle_create_job)
        app.router.add_post("/api/jobs/test/{job_id}", self._handle_test_job)
        app.router.add_get("/api/jobs/{job_id}", self._handle_get_job)
        app.router.add_put("/api/jobs/{job_id}", self._handle_update_job)
        app.router.add_delete("/api/jobs/{job_id}", self._handle_delete_job)
        app.router.add_put("/api/reminders/{job_id}/{reminder_id}", self._handle_update_reminder)
        app.router.add_delete("/api/reminders/{job_id}/{reminder_id}", self._handle_delete_reminder)
        return app

    async def run(self) -> None:
        """Serve until cancelled."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        logger.info("[API] Listening on %s:%d", self._host, self._port)

        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _read_json(request: web.Request) -> Any:
        try:
            return await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise web.HTTPBadRequest(
                text=json.dumps({"error": f"invalid JSON: {exc}"}),
                content_type="application/json",
            )

    def _save_and_schedule(self, job: Job) -> web.Response:
        try:
            self._manager.add_or_update_job(job)
        except ScheduleParseError as exc:
            return _error(400, str(exc))
        self._store.upsert_job(job)
        try:
            self._store.persist()
        except PersistenceError as exc:
            logger.error("[API] %s", exc)
            return _error(500, str(exc))
        return web.json_response(job.to_dict())

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok", **self._manager.status()})

    async def _handle_list_jobs(self, request: web.Request) -> web.Response:
        return web.json_response([job.to_dict() for job in self._store.get_all_jobs()])

    async def _handle_create_job(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        try:
            job = Job.from_dict(data)
        except ValidationError as exc:
            return _error(400, str(exc))
        return self._save_and_schedule(job)

    async def _handle_get_job(self, request: web.Request) -> web.Response:
        try:
            job = self._store.get_job(request.match_info["job_id"])
        except JobNotFoundError as exc:
            return _error(404, str(exc))
        return web.json_response(job.to_dict())

    async def _handle_update_job(self, request: web.Request) -> web.Response:
        job_id = request.match_info["job_id"]
        data   = await self._read_json(request)
        try:
            job = Job.from_dict(data)
        except ValidationError as exc:
            return _error(400, str(exc))
        if job.id != job_id:
            return _error(400, "Job ID mismatch")
        return self._save_and_schedule(job)

    async def _handle_delete_job(self, request: web.Request) -> web.Response:
        job_id = request.match_info["job_id"]
        try:
            self._store.delete_job(job_id)
        except JobNotFoundError as exc:
            return _error(404, str(exc))
        self._manager.remove_job(job_id)
        try:
            self._store.persist()
        except PersistenceError as exc:
            logger.error("[API] %s", exc)
            return _error(500, str(exc))
        return web.Response(status=204)

    async def _handle_test_job(self, request: web.Request) -> web.Response:
        try:
            self._manager.test_job(request.match_info["job_id"])
        except JobNotFoundError as exc:
            return _error(404, str(exc))
        return web.Response(status=204)

    async def _handle_update_reminder(self, request: web.Request) -> web.Response:
        job_id      = request.match_info["job_id"]
        reminder_id = request.match_info["reminder_id"]
        data        = await self._read_json(request)
        try:
            reminder = Reminder.model_validate(data)
        except ValidationError as exc:
            return _error(400, str(exc))
        if reminder.id != reminder_id:
            return _error(400, "Reminder ID mismatch")

        try:
            job = self._store.get_job(job_id)
        except JobNotFoundError as exc:
            return _error(404, str(exc))
        if job.get_reminder(reminder_id) is None:
            return _error(404, "Reminder not found")

        job = self._store.upsert_reminder(job_id, reminder)
        return self._persist_and_reschedule(job, reminder.model_dump(mode="json", by_alias=True))

    async def _handle_delete_reminder(self, request: web.Request) -> web.Response:
        job_id      = request.match_info["job_id"]
        reminder_id = request.match_info["reminder_id"]
        try:
            self._store.delete_reminder(job_id, reminder_id)
        except (JobNotFoundError, ReminderNotFoundError) as exc:
            return _error(404, str(exc))
        return self._persist_and_reschedule(self._store.get_job(job_id))

    def _persist_and_reschedule(self, job: Job, payload: Optional[dict] = None) -> web.Response:
        """Save, then re-register *job*. Answers *payload*, or 204 when there is none."""
        try:
            self._store.persist()
        except PersistenceError as exc:
            logger.error("[API] %s", exc)
            return _error(500, str(exc))
        try:
            self._manager.add_or_update_job(job)
        except ScheduleParseError as exc:
            return _error(400, str(exc))
        if payload is None:
            return web.Response(status=204)
        return web.json_response(payload)
