from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Optional

import pytest

from codeplanner.errors import ServiceError
from codeplanner.orchestrator import Orchestrator


def default_responder(description: str, file: str, content: str) -> str:
    return f"{content}// {description}\n"


class FakeService:
    """In-memory stand-in for the generation service.

    ``gate`` (when set) makes every call wait until the test releases it;
    ``started`` fires as soon as a call is in flight.
    """

    def __init__(
        self,
        plan_chunks: list[str] | None = None,
        responder: Callable[[str, str, str], str] = default_responder,
        fail_on_call: Optional[int] = None,
        plan_error: Optional[str] = None,
        gated: bool = False,
    ) -> None:
        self.plan_chunks = plan_chunks or []
        self.responder = responder
        self.fail_on_call = fail_on_call
        self.plan_error = plan_error
        self.goals: list[str] = []
        self.calls: list[tuple[str, str, str]] = []
        self.started = asyncio.Event()
        self.gate = asyncio.Event()
        if not gated:
            self.gate.set()

    async def stream_plan(self, goal: str) -> AsyncIterator[str]:
        self.goals.append(goal)
        self.started.set()
        await self.gate.wait()
        if self.plan_error:
            raise ServiceError(self.plan_error, 500)
        for chunk in self.plan_chunks:
            yield chunk

    async def execute(self, description: str, file: str, file_content: str) -> str:
        index = len(self.calls)
        self.calls.append((description, file, file_content))
        self.started.set()
        await self.gate.wait()
        if self.fail_on_call == index:
            raise ServiceError(f"model refused step {index + 1}", 500)
        return self.responder(description, file, file_content)


def plan_json(*steps: tuple[str, str]) -> str:
    return json.dumps(
        [{"step": i, "description": d, "file": f} for i, (d, f) in enumerate(steps, 1)]
    )


@pytest.fixture
def make_orchestrator() -> Callable[..., tuple[Orchestrator, FakeService]]:
    def _make(**kwargs) -> tuple[Orchestrator, FakeService]:
        service = FakeService(**kwargs)
        return Orchestrator(service), service

    return _make
