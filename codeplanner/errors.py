from __future__ import annotations
from typing import Optional, Sequence


class CodePlannerError(Exception):
    """Base class for every error raised by the planner."""


class GoalEmptyError(CodePlannerError):
    def __init__(self, message: str = "Goal cannot be empty."):
        super().__init__(message)


class PlanGenerationError(CodePlannerError):
    """The planning service failed or returned something that is not a plan."""


class PlanValidationError(CodePlannerError):
    """A step is missing its description or file path.

    ``index`` is the 0-based position of the first offending step, or None
    when the plan has no steps at all.
    """

    def __init__(self, index: Optional[int]):
        self.index = index
        if index is None:
            message = "Cannot execute an empty plan."
        else:
            message = f"Step {index + 1} has an empty description or file path."
        super().__init__(message)


class StepExecutionError(CodePlannerError):
    def __init__(self, step: int, message: str, log: Sequence[str] = ()):
        self.step = step
        self.message = message
        self.log = tuple(log)
        super().__init__(f"Step {step} failed: {message}")


class ClipboardError(CodePlannerError):
    pass


class InvalidTransitionError(CodePlannerError):
    def __init__(self, operation: str, status: str):
        self.operation = operation
        self.status = status
        super().__init__(f"Cannot {operation} while {status}.")


class StaleAttemptError(CodePlannerError):
    """A late result arrived for an attempt that was reset or superseded."""


class ServiceError(CodePlannerError):
    """Transport or backend failure inside a generation service client."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class LLMError(CodePlannerError):
    pass
