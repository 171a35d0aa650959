from __future__ import annotations
import math
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, StrictStr, field_validator

from .errors import PlanValidationError

StepField = Literal["description", "file"]


class PlanStep(BaseModel):
    """One unit of work: an edit description applied to a single file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    step: int
    description: StrictStr
    file: StrictStr

    @field_validator("step", mode="before")
    @classmethod
    def _any_number(cls, value):
        # models sometimes emit 1.0; position decides the final number anyway
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValueError("step must be a number")
        return int(value)

    def is_executable(self) -> bool:
        return bool(self.description.strip()) and bool(self.file.strip())


Plan = Tuple[PlanStep, ...]


def first_invalid_step(plan: Plan) -> Optional[int]:
    """Index of the first step with a blank description or file, else None."""
    for index, step in enumerate(plan):
        if not step.is_executable():
            return index
    return None


def validate_plan(plan: Plan) -> None:
    if not plan:
        raise PlanValidationError(None)
    index = first_invalid_step(plan)
    if index is not None:
        raise PlanValidationError(index)


def plan_to_json(plan: Plan) -> list[dict]:
    return [step.model_dump() for step in plan]
