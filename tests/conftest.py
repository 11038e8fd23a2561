"""Shared fixtures: a recording HTTP transport and job builders."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from scheduling.models import Job, Reminder, WebhookConfig


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request and answers per URL.

    ``routes`` maps a URL to either an ``httpx.Response`` or an exception
    instance to raise. Unknown URLs answer 200 with an empty body.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests: list[httpx.Request] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes.get(str(request.url))
        if isinstance(answer, Exception):
            raise answer
        if answer is None:
            return httpx.Response(200, text="")
        return answer

    def to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]

    def bodies(self, url: str) -> list[str]:
        return [r.content.decode() for r in self.to(url)]


PRIMARY_URL   = "http://primary.test/hook"
SECONDARY_URL = "http://secondary.test/hook"


def make_job(**overrides) -> Job:
    data = {
        "id": "job-1",
        "name": "Job one",
        "schedule": "*/5 * * * *",
        "enabled": True,
        "primary": {"url": PRIMARY_URL, "method": "POST"},
    }
    data.update(overrides)
    return Job.from_dict(data)


def make_secondary(**overrides) -> dict:
    data = {"url": SECONDARY_URL, "method": "POST", "enabled": True}
    data.update(overrides)
    return data


def make_reminder(rid="r1", text="Stand-up", in_seconds=60.0) -> Reminder:
    return Reminder(
        id=rid,
        text=text,
        datetime=datetime.now(timezone.utc) + timedelta(seconds=in_seconds),
    )


@pytest.fixture()
def transport():
    return RecordingTransport()
