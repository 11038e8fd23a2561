"""
scheduling/__init__.py
----------------------
HookCron – Scheduled webhook chains

Public API
----------
    from scheduling import (
        SchedulingManager,
        CronEngine,
        ReminderManager,
        WebhookExecutor,
        ChainRunner,
        JobStore,
    )

Quick-start
-----------
    from scheduling import Job, JobStore, SchedulingManager

    store = JobStore("config.yaml")
    store.load()

    sched = SchedulingManager(repository=store)
    job = Job.from_dict({
        "id": "ping",
        "name": "Ping",
        "schedule": "*/5 * * * *",
        "enabled": True,
        "primary": {"url": "https://example.com/ping", "method": "GET"},
    })
    sched.add_or_update_job(job)
    store.upsert_job(job)
    store.persist()

    sched.start()   # inside a running event loop
"""

from .chains    import ChainRunner
from .cron      import CronEngine, parse_schedule
from .errors    import (
    JobNotFoundError,
    JQEvalError,
    JQParseError,
    JSONParseError,
    PersistenceError,
    ReminderNotFoundError,
    ScheduleParseError,
    SchedulingError,
    TemplateMarshalError,
    WebhookError,
    WebhookStatusError,
    WebhookTransportError,
)
from .extract   import extract_variables
from .manager   import SchedulingManager
from .models    import Job, Reminder, WebhookConfig
from .registry  import OutputCache, Registry
from .reminders import ReminderManager
from .store     import JobRepository, JobStore
from .templates import render
from .webhooks  import WebhookExecutor

__all__ = [
    "SchedulingManager",
    "CronEngine",
    "ReminderManager",
    "WebhookExecutor",
    "ChainRunner",
    "OutputCache",
    "Registry",
    "JobRepository",
    "JobStore",
    "Job",
    "Reminder",
    "WebhookConfig",
    "extract_variables",
    "parse_schedule",
    "render",
    "SchedulingError",
    "ScheduleParseError",
    "WebhookError",
    "WebhookTransportError",
    "WebhookStatusError",
    "JSONParseError",
    "JQParseError",
    "JQEvalError",
    "TemplateMarshalError",
    "PersistenceError",
    "JobNotFoundError",
    "ReminderNotFoundError",
]
