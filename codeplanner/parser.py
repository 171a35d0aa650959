from __future__ import annotations
import json
import logging
from typing import AsyncIterable, Callable, Optional

from pydantic import TypeAdapter, ValidationError

from .editor import renumber
from .errors import PlanGenerationError, ServiceError, StaleAttemptError
from .plan import Plan, PlanStep
from .utils import strip_code_fences

logger = logging.getLogger(__name__)

_steps_adapter = TypeAdapter(list[PlanStep])


def parse_plan(text: str) -> Plan:
    """Parse a completed planning response into a densely numbered plan.

    Accepts a bare JSON array, the relay's ``{"plan": [...]}`` envelope, and
    either of those wrapped in a markdown code fence.
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise PlanGenerationError("The planning service returned an empty response.")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise PlanGenerationError(f"Plan is not valid JSON: {e}") from e

    if isinstance(data, dict) and "plan" in data:
        data = data["plan"]
    if not isinstance(data, list):
        raise PlanGenerationError(f"Plan must be a JSON array, got {type(data).__name__}.")

    try:
        steps = _steps_adapter.validate_python(data)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first["loc"])
        raise PlanGenerationError(f"Malformed plan step at {where}: {first['msg']}") from e
    return renumber(tuple(steps))


class StreamingPlanParser:
    """Accumulates a plan response chunk by chunk.

    ``buffer`` is the text received so far and is only meant for display;
    nothing is parsed until :meth:`finish`.
    """

    def __init__(self, on_chunk: Optional[Callable[[str], None]] = None):
        self._chunks: list[str] = []
        self._on_chunk = on_chunk
        self.finished = False

    @property
    def buffer(self) -> str:
        return "".join(self._chunks)

    def feed(self, chunk: str) -> None:
        if self.finished:
            raise RuntimeError("parser already finished")
        if not chunk:
            return
        self._chunks.append(chunk)
        if self._on_chunk:
            self._on_chunk(self.buffer)

    def finish(self) -> Plan:
        self.finished = True
        plan = parse_plan(self.buffer)
        logger.debug("parsed plan with %d steps", len(plan))
        return plan

    async def consume(self, stream: AsyncIterable[str]) -> Plan:
        """Drain ``stream`` into the buffer, then parse it.

        Any failure of the stream surfaces as :class:`PlanGenerationError`.
        """
        try:
            async for chunk in stream:
                self.feed(chunk)
        except StaleAttemptError:
            raise
        except Exception as e:
            if not isinstance(e, ServiceError):
                logger.exception("planning stream failed")
            raise PlanGenerationError(str(e) or f"Planning failed: {type(e).__name__}") from e
        return self.finish()
