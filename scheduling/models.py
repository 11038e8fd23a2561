"""
scheduling/models.py
--------------------
HookCron – Job, webhook and reminder records

The field aliases are the serialized names shared by the YAML job file and
the management API, so `Job.from_dict(job.to_dict())` round-trips a record
written by any earlier version of the service.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel as _BaseModel, ConfigDict, Field, field_validator

ALLOWED_METHODS = ("GET", "POST")

# Keys dropped from serialized output when their value is empty.
_OMIT_EMPTY = {
    "headers", "body", "jq_selectors", "body_template",
    "only_if_vars_non_empty", "timeout", "secondary",
    "save_output", "description", "reminders",
}


class BaseModel(_BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _compact(fields: dict) -> dict:
    """Drop empty optional fields of one serialized model, not of its mapping values."""
    return {k: v for k, v in fields.items() if not (k in _OMIT_EMPTY and not v)}


class WebhookConfig(BaseModel):
    """One HTTP call: where to send it, what to send and how long to wait."""
    url:                    str
    method:                 str            = "POST"
    headers:                dict[str, str] = Field(default_factory=dict)
    body:                   str            = ""
    body_template:          str            = ""
    # variable name -> jq expression, read only on the secondary webhook
    jq_selectors:           dict[str, str] = Field(default_factory=dict)
    only_if_vars_non_empty: bool           = False
    timeout_seconds:        int            = Field(0, alias="timeout", ge=0)
    enabled:                bool           = False

    @field_validator("method", mode="before")
    @classmethod
    def _normalise_method(cls, v: Any) -> str:
        method = str(v or "POST").upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"method must be one of {', '.join(ALLOWED_METHODS)}, got {v!r}")
        return method

    @field_validator("headers", "jq_selectors", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class Reminder(BaseModel):
    id:      str
    text:    str = ""
    fire_at: datetime = Field(alias="datetime")

    @field_validator("fire_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class Job(BaseModel):
    id:          str
    name:        str                     = ""
    description: str                     = ""
    schedule:    str
    enabled:     bool                    = False
    primary:     WebhookConfig
    secondary:   Optional[WebhookConfig] = None
    save_output: bool                    = False
    reminders:   list[Reminder]          = Field(default_factory=list)

    @field_validator("reminders", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    def snapshot(self) -> "Job":
        """Deep copy, safe to hand to a running execution."""
        return self.model_copy(deep=True)

    def get_reminder(self, reminder_id: str) -> Optional[Reminder]:
        for reminder in self.reminders:
            if reminder.id == reminder_id:
                return reminder
        return None

    # ------------------------------------------------------------------
    # Wire format
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        data = _compact(self.model_dump(mode="json", by_alias=True, exclude_none=True))
        for key in ("primary", "secondary"):
            if key in data:
                data[key] = _compact(data[key])
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        return cls.model_validate(data)
