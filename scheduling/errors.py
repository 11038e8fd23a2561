"""
scheduling/errors.py
--------------------
HookCron – Error taxonomy

Registration-time errors (ScheduleParseError) are raised to the caller.
Everything raised while a job or reminder is executing is logged and
swallowed by the engine at the point where it happens.
"""

from __future__ import annotations


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling engine."""


class ScheduleParseError(SchedulingError, ValueError):
    """The job's cron expression is malformed; the job is not scheduled."""

    def __init__(self, expr: str, reason: str = ""):
        self.expr = expr
        self.reason = reason
        msg = f"Invalid cron expression {expr!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class WebhookError(SchedulingError):
    """Base class for failed webhook calls."""


class WebhookTransportError(WebhookError):
    """DNS failure, refused connection, timeout or any other transport fault."""


class WebhookStatusError(WebhookError):
    """The server answered, but with an HTTP status >= 400."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"webhook returned error status {status_code}: {body}")


class JSONParseError(SchedulingError):
    """A response that should have been JSON could not be decoded."""


class JQParseError(SchedulingError):
    """A selector expression failed to compile."""


class JQEvalError(SchedulingError):
    """A selector expression raised while running against a document."""


class TemplateMarshalError(SchedulingError):
    """A template value could not be JSON-encoded."""


class PersistenceError(SchedulingError):
    """The job repository failed to save its state."""


class JobNotFoundError(SchedulingError, KeyError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"job with id {job_id} not found")

    def __str__(self) -> str:
        return self.args[0]


class ReminderNotFoundError(SchedulingError, KeyError):
    def __init__(self, job_id: str, reminder_id: str):
        self.job_id = job_id
        self.reminder_id = reminder_id
        super().__init__(f"reminder with id {reminder_id} not found in job {job_id}")

    def __str__(self) -> str:
        return self.args[0]
