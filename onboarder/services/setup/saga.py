"""Step-table executor for provisioning workflows with compensating cleanup.

A workflow is an ordered tuple of ``Step`` objects, each a forward action plus an
optional compensation. ``SagaExecutor.run`` walks the table once:

  emit progress -> run forward -> record as completed -> register compensation

and on the first failure pops the registered compensations most-recent-first.
The result is always a ``ProvisioningOutcome``; remote failures never escape.

  every step commits                 -> succeeded
  a step fails, nothing to undo      -> failed
  a step fails, all undos succeed    -> rolled_back (original error kept)
  a step fails, an undo fails        -> failed with CleanupFailure

Cancelling the run is the one exception: the registered undos still run, then
``asyncio.CancelledError`` propagates to the caller.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence

from onboarder.services.setup.progress import ProgressEvent, ProgressSink


logger = logging.getLogger(__name__)


# ── Errors ───────────────────────────────────────────────────────────


class ProvisioningError(RuntimeError):
    pass


class ProvisioningValidationError(ProvisioningError, ValueError):
    """Request rejected locally, or refused up front, before anything was created."""


class ResourceUnavailableError(ProvisioningValidationError):
    def __init__(self, resource_id: str) -> None:
        super().__init__(f"Identifier is already in use: {resource_id}")
        self.resource_id = resource_id


class PermissionMissingError(ProvisioningError):
    def __init__(self, permission: str, target: str) -> None:
        super().__init__(f"Caller lacks permission {permission} on {target}")
        self.permission = permission
        self.target = target


class StepFailure(ProvisioningError):
    def __init__(self, step_name: str, cause: BaseException) -> None:
        super().__init__(f"Step {step_name!r} failed")
        self.step_name = step_name
        self.cause = cause
        self.__cause__ = cause


class CleanupFailure(ProvisioningError):
    """A compensation failed after a step failure; the resource may still exist."""

    def __init__(
        self,
        step_failure: ProvisioningError,
        *,
        resource_id: str,
        failures: Sequence[tuple[str, BaseException]],
    ) -> None:
        failed_step = getattr(step_failure, "step_name", None) or "workflow"
        details = "; ".join(f"{name}: {exc}" for name, exc in failures)
        super().__init__(
            f"Cleanup failed after step {failed_step!r} failed; manual intervention required: "
            f"{resource_id!r} may still exist ({details})"
        )
        self.step_failure = step_failure
        self.resource_id = resource_id
        self.failures = tuple(failures)
        self.__cause__ = step_failure


def format_cause_chain(exc: Optional[BaseException]) -> Optional[str]:
    """Render ``exc`` and its ``__cause__`` chain as one readable line."""

    if exc is None:
        return None

    parts: list[str] = []
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(str(current) or type(current).__name__)
        current = current.__cause__
    return ": ".join(parts)


# ── Workflow types ───────────────────────────────────────────────────


class ProvisioningStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


@dataclass
class WorkflowState:
    """Mutable bookkeeping for one run. Never shared between runs."""

    resource_id: str
    current_step_index: int = -1
    committed_steps: deque["Step"] = field(default_factory=deque)
    completed_steps: list[str] = field(default_factory=list)
    resource_created: bool = False
    resource: Any = None


StepAction = Callable[[WorkflowState], Awaitable[None]]


@dataclass(frozen=True)
class Step:
    name: str
    forward: StepAction
    compensation: Optional[StepAction] = None
    compensation_name: Optional[str] = None
    creates_resource: bool = False

    @property
    def undo_name(self) -> str:
        return self.compensation_name or f"undo_{self.name}"


@dataclass(frozen=True)
class ProvisioningOutcome:
    status: ProvisioningStatus
    resource_id: str
    completed_steps: tuple[str, ...] = ()
    error: Optional[ProvisioningError] = field(default=None, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.status is ProvisioningStatus.SUCCEEDED

    @property
    def error_message(self) -> Optional[str]:
        return format_cause_chain(self.error)

    @property
    def requires_manual_intervention(self) -> bool:
        return isinstance(self.error, CleanupFailure)


# ── Executor ─────────────────────────────────────────────────────────


class SagaExecutor:
    """Runs a step table strictly in order, one awaited step at a time."""

    def __init__(self, *, workflow: str) -> None:
        self._workflow = workflow

    async def run(
        self,
        steps: Sequence[Step],
        *,
        state: WorkflowState,
        progress: Optional[ProgressSink] = None,
    ) -> ProvisioningOutcome:
        total = len(steps)
        for index, step in enumerate(steps):
            state.current_step_index = index
            self._emit(progress, ProgressEvent(step_name=step.name, step_index=index, total_steps=total))

            try:
                await step.forward(state)
            except asyncio.CancelledError as exc:
                if not state.committed_steps:
                    raise
                # Undo what was created, then let the cancellation through. Shielded so a
                # second cancel cannot interrupt the cleanup itself.
                logger.warning("%s: cancelled during %s for %s; cleaning up", self._workflow, step.name, state.resource_id)
                await asyncio.shield(self._compensate(state, StepFailure(step.name, exc)))
                raise
            except ProvisioningValidationError as exc:
                logger.warning("%s: step %s rejected %s: %s", self._workflow, step.name, state.resource_id, exc)
                return await self._compensate(state, exc)
            except Exception as exc:
                logger.error("%s: step %s failed for %s: %s", self._workflow, step.name, state.resource_id, exc)
                return await self._compensate(state, StepFailure(step.name, exc))

            state.completed_steps.append(step.name)
            if step.creates_resource:
                state.resource_created = True
            if step.compensation is not None:
                state.committed_steps.appendleft(step)

        logger.info("%s: all %d steps completed for %s", self._workflow, total, state.resource_id)
        return ProvisioningOutcome(
            status=ProvisioningStatus.SUCCEEDED,
            resource_id=state.resource_id,
            completed_steps=tuple(state.completed_steps),
        )

    async def _compensate(self, state: WorkflowState, failure: ProvisioningError) -> ProvisioningOutcome:
        completed = tuple(state.completed_steps)
        if not state.committed_steps:
            return ProvisioningOutcome(
                status=ProvisioningStatus.FAILED,
                resource_id=state.resource_id,
                completed_steps=completed,
                error=failure,
            )

        failures: list[tuple[str, BaseException]] = []
        while state.committed_steps:
            step = state.committed_steps.popleft()
            logger.info("%s: running %s for %s", self._workflow, step.undo_name, state.resource_id)
            try:
                await step.compensation(state)
            except Exception as exc:
                logger.exception("%s: %s failed for %s", self._workflow, step.undo_name, state.resource_id)
                failures.append((step.undo_name, exc))
                continue
            if step.creates_resource:
                state.resource_created = False

        if failures:
            logger.error(
                "%s: cleanup failed for %s; manual intervention required", self._workflow, state.resource_id
            )
            return ProvisioningOutcome(
                status=ProvisioningStatus.FAILED,
                resource_id=state.resource_id,
                completed_steps=completed,
                error=CleanupFailure(failure, resource_id=state.resource_id, failures=failures),
            )

        logger.info("%s: rolled back %s", self._workflow, state.resource_id)
        return ProvisioningOutcome(
            status=ProvisioningStatus.ROLLED_BACK,
            resource_id=state.resource_id,
            completed_steps=completed,
            error=failure,
        )

    def _emit(self, progress: Optional[ProgressSink], event: ProgressEvent) -> None:
        if progress is None:
            return
        try:
            progress(event)
        except Exception:
            logger.exception("%s: progress sink raised on %s", self._workflow, event.step_name)
