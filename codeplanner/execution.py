from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Tuple

from .client import GenerationService
from .errors import ServiceError, StepExecutionError
from .plan import Plan
from .vfs import VirtualFileSystem

logger = logging.getLogger(__name__)

ALL_DONE = "All steps executed!"


@dataclass(frozen=True)
class ExecutionResult:
    files: Mapping[str, str]
    log: Tuple[str, ...]


class ExecutionLoop:
    """Applies a validated plan one step at a time against a fresh VirtualFileSystem.

    A step only starts after the previous step's output has been written, so
    steps that target the same file compose: each sees its predecessor's
    output as the current content. The first failing step aborts the run and
    nothing written so far is published.
    """

    def __init__(self, service: GenerationService, on_log: Optional[Callable[[str], None]] = None,
                 guard: Optional[Callable[[], None]] = None):
        self.service = service
        self.on_log = on_log
        # called after every suspension point; raises to abandon the run
        self.guard = guard
        self.log: List[str] = []

    def _append(self, entry: str) -> None:
        self.log.append(entry)
        if self.on_log:
            self.on_log(entry)

    async def run(self, plan: Plan) -> ExecutionResult:
        self.log = []
        vfs = VirtualFileSystem()

        for step in sorted(plan, key=lambda s: s.step):
            self._append(f"Executing step {step.step}: {step.description}...")
            current = vfs.read(step.file)
            try:
                new_content = await self.service.execute(step.description, step.file, current)
            except Exception as e:
                if self.guard:
                    self.guard()
                message = str(e) or f"Failed to execute step {step.step}."
                logger.error("step %d (%s) failed: %s", step.step, step.file, message,
                             exc_info=not isinstance(e, ServiceError))
                self._append(f"Error on step {step.step}: {message}")
                raise StepExecutionError(step.step, message, self.log) from e
            if self.guard:
                self.guard()
            vfs.write(step.file, new_content)
            logger.info("step %d (%s) completed", step.step, step.file)
            self._append(f"Step {step.step} ({step.file}) completed.")

        self._append(ALL_DONE)
        return ExecutionResult(files=vfs.snapshot(), log=tuple(self.log))
