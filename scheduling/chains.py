"""
scheduling/chains.py
--------------------
HookCron – Primary → secondary webhook chains

A job firing is a two-step chain:

  1. the primary webhook is called; if it fails the firing ends there
  2. when `save_output` is set, a non-empty response is cached for the job
  3. an enabled secondary webhook is then called with a body built from the
     cached response: jq selectors pull variables out of it and the
     secondary's `body_template` is rendered with them, or the raw response
     is sent as-is when there is no template

Failures at any step are logged and dropped. A failing secondary never
undoes the primary's success or its cached output.

Executions are spawned as independent asyncio tasks. Nothing orders one
task against another, including two firings of the same job.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional

from .errors import JSONParseError, WebhookError
from .extract import extract_variables, has_non_empty
from .models import Job, WebhookConfig
from .registry import OutputCache
from .templates import JsonValue, render
from .webhooks import WebhookExecutor

logger = logging.getLogger("hookcron.scheduling.chains")


class ChainRunner:
    """
    Runs job chains and owns the set of in-flight execution tasks.

    Parameters
    ----------
    executor       : WebhookExecutor
    outputs        : OutputCache
    max_concurrent : int — cap on simultaneous executions (0 = unbounded)
    """

    def __init__(
        self,
        executor: WebhookExecutor,
        outputs: OutputCache,
        max_concurrent: int = 0,
    ):
        self._executor = executor
        self._outputs  = outputs
        self._limit    = asyncio.Semaphore(max_concurrent) if max_concurrent > 0 else None
        self._tasks:   set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Task spawning
    # ------------------------------------------------------------------

    def spawn(self, coro: Awaitable[None], name: str = "") -> asyncio.Task:
        """Start *coro* as a fire-and-forget task on the running loop."""
        task = asyncio.get_running_loop().create_task(self._guarded(coro), name=name or None)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guarded(self, coro: Awaitable[None]) -> None:
        try:
            if self._limit is None:
                await coro
            else:
                async with self._limit:
                    await coro
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("[Chains] Execution crashed: %s", exc)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight execution to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Webhook calls
    # ------------------------------------------------------------------

    async def call(self, label: str, config: WebhookConfig) -> Optional[str]:
        """Execute one webhook, logging instead of raising. None means failure."""
        try:
            return await self._executor.execute(config)
        except WebhookError as exc:
            logger.warning("[Chains] %s webhook failed: %s", label, exc)
            return None

    # ------------------------------------------------------------------
    # Job chain
    # ------------------------------------------------------------------

    async def run_job(self, job: Job) -> None:
        logger.info("[Chains] Executing job: %s (ID: %s)", job.name, job.id)

        output = await self.call(f"Primary ({job.id})", job.primary)
        if output is None:
            return

        if job.save_output:
            if output:
                self._outputs.store(job.id, output)
            else:
                logger.info("[Chains] No output to save for job %s", job.id)

        secondary = job.secondary
        if secondary is None:
            logger.debug("[Chains] No secondary webhook for job %s", job.id)
            return
        if not secondary.enabled:
            logger.info("[Chains] Secondary webhook disabled for job %s", job.id)
            return

        if job.save_output:
            cached = self._outputs.get(job.id)
            if not cached:
                logger.info("[Chains] No saved output available for job %s; secondary skipped", job.id)
                return
            body = self._body_from_output(job.id, secondary, cached)
            if body is None:
                return
        else:
            body = secondary.body or render(secondary.body_template, {})

        await self.call(f"Secondary ({job.id})", secondary.model_copy(update={"body": body}))
        logger.info("[Chains] Finished job: %s (ID: %s)", job.name, job.id)

    def _body_from_output(self, job_id: str, secondary: WebhookConfig, output: str) -> Optional[str]:
        variables: dict[str, JsonValue] = {}
        try:
            variables = extract_variables(output, secondary.jq_selectors)
        except JSONParseError as exc:
            logger.warning("[Chains] Variable extraction failed for job %s: %s", job_id, exc)

        if secondary.only_if_vars_non_empty and secondary.jq_selectors and not has_non_empty(variables):
            logger.info("[Chains] Selectors produced no values for job %s; secondary skipped", job_id)
            return None

        if secondary.body_template:
            return render(secondary.body_template, variables)
        return output
