from __future__ import annotations
from typing import Optional

from .plan import Plan, PlanStep, StepField

EDITABLE_FIELDS = ("description", "file")

# Every function returns a new plan; the input tuple and its steps are never touched.


def renumber(plan: Plan) -> Plan:
    return tuple(
        step if step.step == i else step.model_copy(update={"step": i})
        for i, step in enumerate(plan, 1)
    )


def set_field(plan: Plan, index: int, field: StepField, value: str) -> Plan:
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"field must be one of {EDITABLE_FIELDS}, got {field!r}")
    if not 0 <= index < len(plan):
        return plan
    updated = plan[index].model_copy(update={field: value})
    return plan[:index] + (updated,) + plan[index + 1:]


def delete_step(plan: Plan, index: int) -> Plan:
    if not 0 <= index < len(plan):
        return plan
    return renumber(plan[:index] + plan[index + 1:])


def add_step(plan: Plan, file: Optional[str] = None) -> Plan:
    if file is None:
        file = plan[-1].file if plan else ""
    new = PlanStep(step=len(plan) + 1, description="", file=file)
    return tuple(plan) + (new,)
