"""Tests for scheduling.chains -- primary → secondary job execution."""

import json

import httpx
import pytest

from conftest import PRIMARY_URL, SECONDARY_URL, RecordingTransport, make_job, make_secondary
from scheduling.chains import ChainRunner
from scheduling.registry import OutputCache
from scheduling.webhooks import WebhookExecutor


def _runner(transport, max_concurrent=0):
    outputs = OutputCache()
    return ChainRunner(WebhookExecutor(transport=transport), outputs, max_concurrent), outputs


class TestRunJob:
    @pytest.mark.asyncio
    async def test_selectors_feed_body_template(self):
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(200, text='{"status":"ok"}')})
        runner, outputs = _runner(transport)
        job = make_job(
            save_output=True,
            secondary=make_secondary(
                jq_selectors={"s": ".status"},
                body_template='{"result":"{{s}}"}',
            ),
        )
        await runner.run_job(job)
        assert transport.bodies(SECONDARY_URL) == ['{"result":"ok"}']
        assert outputs.get("job-1") == '{"status":"ok"}'

    @pytest.mark.asyncio
    async def test_raw_output_forwarded_without_template(self):
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(200, text='{"a": 1}')})
        runner, _ = _runner(transport)
        await runner.run_job(make_job(save_output=True, secondary=make_secondary()))
        assert transport.bodies(SECONDARY_URL) == ['{"a": 1}']

    @pytest.mark.asyncio
    async def test_disabled_secondary_never_called(self):
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(200, text="{}")})
        runner, _ = _runner(transport)
        await runner.run_job(make_job(save_output=True, secondary=make_secondary(enabled=False)))
        assert len(transport.to(PRIMARY_URL)) == 1
        assert transport.to(SECONDARY_URL) == []

    @pytest.mark.asyncio
    async def test_primary_failure_stops_chain(self, caplog):
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(500, text="down")})
        runner, outputs = _runner(transport)
        with caplog.at_level("WARNING", logger="hookcron.scheduling.chains"):
            await runner.run_job(make_job(save_output=True, secondary=make_secondary()))
        assert transport.to(SECONDARY_URL) == []
        assert "job-1" not in outputs
        assert "500" in caplog.text and "down" in caplog.text

    @pytest.mark.asyncio
    async def test_secondary_failure_keeps_cached_output(self):
        transport = RecordingTransport({
            PRIMARY_URL: httpx.Response(200, text='{"v": 1}'),
            SECONDARY_URL: httpx.Response(502),
        })
        runner, outputs = _runner(transport)
        await runner.run_job(make_job(save_output=True, secondary=make_secondary()))
        assert outputs.get("job-1") == '{"v": 1}'

    @pytest.mark.asyncio
    async def test_without_save_output_sends_literal_body(self):
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(200, text='{"s": "x"}')})
        runner, outputs = _runner(transport)
        job = make_job(secondary=make_secondary(
            body='{"fixed": true}', jq_selectors={"s": ".s"}, body_template="{{s}}",
        ))
        await runner.run_job(job)
        assert transport.bodies(SECONDARY_URL) == ['{"fixed": true}']
        assert len(outputs) == 0

    @pytest.mark.asyncio
    async def test_without_save_output_template_gets_no_variables(self):
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(200, text='{"s": "x"}')})
        runner, _ = _runner(transport)
        job = make_job(secondary=make_secondary(body_template='{"s": "{{s}}", "r": "{{REMINDER}}"}'))
        await runner.run_job(job)
        assert transport.bodies(SECONDARY_URL) == ['{"s": "{{s}}", "r": ""}']

    @pytest.mark.asyncio
    async def test_empty_output_with_save_output_skips_secondary(self):
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(200, text="")})
        runner, outputs = _runner(transport)
        await runner.run_job(make_job(save_output=True, secondary=make_secondary()))
        assert transport.to(SECONDARY_URL) == []
        assert "job-1" not in outputs

    @pytest.mark.asyncio
    async def test_non_json_output_renders_template_without_variables(self):
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(200, text="plain")})
        runner, _ = _runner(transport)
        job = make_job(save_output=True, secondary=make_secondary(
            jq_selectors={"s": ".s"}, body_template='{"s": "{{s}}"}',
        ))
        await runner.run_job(job)
        assert transport.bodies(SECONDARY_URL) == ['{"s": "{{s}}"}']

    @pytest.mark.asyncio
    async def test_only_if_vars_non_empty_gate(self):
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(200, text='{"s": ""}')})
        runner, _ = _runner(transport)
        job = make_job(save_output=True, secondary=make_secondary(
            jq_selectors={"s": ".s"}, body_template="{{s}}", only_if_vars_non_empty=True,
        ))
        await runner.run_job(job)
        assert transport.to(SECONDARY_URL) == []

    @pytest.mark.asyncio
    async def test_non_string_variables_marshaled(self):
        transport = RecordingTransport({
            PRIMARY_URL: httpx.Response(200, text='{"items": [{"id": 1}, {"id": 2}], "n": 2}'),
        })
        runner, _ = _runner(transport)
        job = make_job(save_output=True, secondary=make_secondary(
            jq_selectors={"ids": "[.items[].id]", "n": ".n"},
            body_template='{"ids": {{ids}}, "count": {{n}}}',
        ))
        await runner.run_job(job)
        assert json.loads(transport.bodies(SECONDARY_URL)[0]) == {"ids": [1, 2], "count": 2}


class TestSpawn:
    @pytest.mark.asyncio
    async def test_spawn_and_drain(self):
        transport = RecordingTransport()
        runner, _ = _runner(transport, max_concurrent=1)
        for _ in range(3):
            runner.spawn(runner.run_job(make_job()))
        assert runner.in_flight == 3
        await runner.drain()
        assert runner.in_flight == 0
        assert len(transport.to(PRIMARY_URL)) == 3

    @pytest.mark.asyncio
    async def test_crash_in_task_is_logged(self, caplog):
        runner, _ = _runner(RecordingTransport())

        async def boom():
            raise RuntimeError("kaput")

        with caplog.at_level("ERROR", logger="hookcron.scheduling.chains"):
            runner.spawn(boom())
            await runner.drain()
        assert "kaput" in caplog.text
