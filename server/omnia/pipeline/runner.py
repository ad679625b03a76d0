"""Sequential pipeline runner.

A run walks a bounded list of items through
fetch context -> external call -> persist -> status update,
one item at a time, in input order. Each item owns a PipelineTask; a failure
is recorded on that task and the run moves on to the next item.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from .errors import ErrorKind, ExternalCallError, PipelineError, redact
from .state import PipelineRun, PipelineTask

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 30.0


@dataclass
class Persisted:
    """Return value of ``persist`` when the stored artifact came from a fallback."""
    result: Any
    degraded: bool = False


class PipelineStep(ABC):
    """One handler's unit of work."""

    #: Human-readable name used in logs.
    name: str = "pipeline"

    #: Secret values stripped from error details.
    secrets: Sequence[str] = ()

    def task_id(self, item: Any) -> str:
        if isinstance(item, dict) and item.get("id") is not None:
            return str(item["id"])
        return str(item)

    @abstractmethod
    async def build_request(self, item: Any) -> Any:
        """Fetch whatever context the item needs and build the call payload."""

    @abstractmethod
    async def invoke(self, request: Any) -> Any:
        """Call the external generator/transformer."""

    @abstractmethod
    async def persist(self, item: Any, response: Any) -> Any:
        """Store the produced artifact; return its reference or a Persisted."""

    async def record_status(self, task: PipelineTask) -> None:
        """Write task status back to the record store. No-op by default."""
        return None


async def _sink(step: PipelineStep, task: PipelineTask) -> None:
    try:
        await step.record_status(task)
    except Exception as e:
        # The in-memory outcome stays authoritative for this run
        logger.error(
            "%s: could not record status %s for %s: %s",
            step.name, task.status.value, task.id, redact(str(e), step.secrets),
        )


async def run_item(
    step: PipelineStep,
    item: Any,
    timeout: float = DEFAULT_CALL_TIMEOUT,
) -> PipelineTask:
    """Run a single item through the step and return its task."""
    task = PipelineTask(id=step.task_id(item))
    task.start()
    await _sink(step, task)

    try:
        request = await step.build_request(item)
        try:
            response = await asyncio.wait_for(step.invoke(request), timeout=timeout)
        except asyncio.TimeoutError:
            raise ExternalCallError(f"external call timed out after {timeout:g}s")
        outcome = await step.persist(item, response)
        if isinstance(outcome, Persisted):
            task.succeed(outcome.result, degraded=outcome.degraded)
        else:
            task.succeed(outcome)
    except PipelineError as e:
        detail = redact(str(e), step.secrets)
        logger.warning("%s: item %s failed (%s): %s", step.name, task.id, e.kind.value, detail)
        task.fail(e.kind, detail)
    except Exception as e:
        logger.exception("%s: unexpected error on item %s", step.name, task.id)
        task.fail(ErrorKind.UNEXPECTED, f"unexpected error ({type(e).__name__})")

    await _sink(step, task)
    return task


async def run_pipeline(
    step: PipelineStep,
    items: Iterable[Any],
    *,
    limit: Optional[int] = None,
    timeout: float = DEFAULT_CALL_TIMEOUT,
) -> PipelineRun:
    """Run every item (up to ``limit``) through ``step`` in input order."""
    run = PipelineRun()
    for index, item in enumerate(items):
        if limit is not None and index >= limit:
            break
        run.tasks.append(await run_item(step, item, timeout=timeout))

    logger.info(
        "%s: run finished, %d succeeded, %d failed",
        step.name, run.succeeded, run.failed,
    )
    return run
