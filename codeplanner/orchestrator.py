from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Tuple

from .client import GenerationService
from .editor import add_step, delete_step, set_field
from .errors import (
    GoalEmptyError,
    InvalidTransitionError,
    PlanGenerationError,
    PlanValidationError,
    StaleAttemptError,
    StepExecutionError,
)
from .execution import ExecutionLoop
from .parser import StreamingPlanParser
from .plan import Plan, StepField, validate_plan

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    REVIEW = "review"
    EXECUTING = "executing"
    DONE = "done"


def _no_files() -> Mapping[str, str]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of the orchestrator after a transition."""

    status: RunStatus = RunStatus.IDLE
    goal: str = ""
    plan: Optional[Plan] = None
    streaming_plan: str = ""
    log: Tuple[str, ...] = ()
    files: Mapping[str, str] = field(default_factory=_no_files)
    validation_error_index: Optional[int] = None
    error: Optional[str] = None
    attempt: int = 0


Listener = Callable[[Snapshot], None]


class Orchestrator:
    """Drives goal -> plan -> review -> execute -> done.

    The status value is the only admission control: an operation that is not
    allowed in the current status raises InvalidTransitionError. Every
    generation and execution captures an attempt number; a result that lands
    after ``reset`` or a newer attempt is dropped without touching state.
    """

    def __init__(self, service: GenerationService):
        self.service = service
        self._state = Snapshot()
        self._listeners: List[Listener] = []

    @property
    def snapshot(self) -> Snapshot:
        return self._state

    @property
    def status(self) -> RunStatus:
        return self._state.status

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _update(self, **changes) -> Snapshot:
        previous = self._state.status
        self._state = replace(self._state, **changes)
        if self._state.status is not previous:
            logger.info("status %s -> %s", previous.value, self._state.status.value)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def _require(self, operation: str, *allowed: RunStatus) -> None:
        if self._state.status not in allowed:
            raise InvalidTransitionError(operation, self._state.status.value)

    def _begin_attempt(self) -> int:
        attempt = self._state.attempt + 1
        self._state = replace(self._state, attempt=attempt)
        return attempt

    def _check(self, attempt: int) -> None:
        if attempt != self._state.attempt:
            raise StaleAttemptError(f"attempt {attempt} was superseded by {self._state.attempt}")

    # generation

    async def generate(self, goal: str) -> Snapshot:
        if not goal.strip():
            raise GoalEmptyError()
        self._require("generate", RunStatus.IDLE)
        attempt = self._begin_attempt()
        self._update(
            status=RunStatus.PLANNING, goal=goal, plan=None, streaming_plan="", log=(),
            files=_no_files(), validation_error_index=None, error=None,
        )

        def on_chunk(buffer: str) -> None:
            self._check(attempt)
            self._update(streaming_plan=buffer)

        parser = StreamingPlanParser(on_chunk=on_chunk)
        stream = self.service.stream_plan(goal)
        try:
            plan = await parser.consume(stream)
            self._check(attempt)
        except StaleAttemptError:
            logger.info("dropping plan from abandoned attempt %d", attempt)
            return self._state
        except PlanGenerationError as e:
            if attempt != self._state.attempt:
                logger.info("dropping planning failure from abandoned attempt %d", attempt)
                return self._state
            logger.error("plan generation failed: %s", e)
            self._update(status=RunStatus.IDLE, plan=None, error=str(e))
            raise
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        logger.info("plan ready with %d steps", len(plan))
        return self._update(status=RunStatus.REVIEW, plan=plan)

    # review

    def _edit(self, operation: str, edit: Callable[[Plan], Plan]) -> Snapshot:
        self._require(operation, RunStatus.REVIEW)
        plan = edit(self._state.plan or ())
        if plan is self._state.plan:
            return self._state
        return self._update(plan=plan)

    def set_field(self, index: int, field_name: StepField, value: str) -> Snapshot:
        return self._edit("edit a step", lambda plan: set_field(plan, index, field_name, value))

    def delete_step(self, index: int) -> Snapshot:
        return self._edit("delete a step", lambda plan: delete_step(plan, index))

    def add_step(self, file: Optional[str] = None) -> Snapshot:
        return self._edit("add a step", lambda plan: add_step(plan, file))

    # execution

    async def execute(self) -> Snapshot:
        self._require("execute", RunStatus.REVIEW)
        plan = self._state.plan or ()
        try:
            validate_plan(plan)
        except PlanValidationError as e:
            logger.warning("refusing to execute: %s", e)
            self._update(validation_error_index=e.index, error=str(e))
            raise

        attempt = self._begin_attempt()
        self._update(
            status=RunStatus.EXECUTING, log=(), files=_no_files(),
            validation_error_index=None, error=None,
        )

        def on_log(entry: str) -> None:
            self._check(attempt)
            self._update(log=self._state.log + (entry,))

        loop = ExecutionLoop(self.service, on_log=on_log, guard=lambda: self._check(attempt))
        try:
            result = await loop.run(plan)
        except StaleAttemptError:
            logger.info("dropping results from abandoned execution attempt %d", attempt)
            return self._state
        except StepExecutionError as e:
            # the plan stays as it was so the reviewer can fix it and retry
            self._update(status=RunStatus.REVIEW, files=_no_files(), error=e.message)
            raise

        logger.info("execution finished, %d file(s) produced", len(result.files))
        return self._update(status=RunStatus.DONE, files=result.files)

    def reset(self) -> Snapshot:
        attempt = self._state.attempt + 1
        return self._update(
            status=RunStatus.IDLE, goal="", plan=None, streaming_plan="", log=(),
            files=_no_files(), validation_error_index=None, error=None, attempt=attempt,
        )
