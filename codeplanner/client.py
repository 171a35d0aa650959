from __future__ import annotations
import asyncio
import logging
from typing import AsyncIterator, Optional, Protocol

import httpx

from .errors import LLMError, ServiceError
from .llm import LLM, EditInstruction

logger = logging.getLogger(__name__)


class GenerationService(Protocol):
    """The two operations the orchestrator needs from a model backend."""

    def stream_plan(self, goal: str) -> AsyncIterator[str]: ...

    async def execute(self, description: str, file: str, file_content: str) -> str: ...


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("details") or body.get("error")
        if message:
            return str(message)
    return f"{fallback} (HTTP {response.status_code})"


class HTTPGenerationService:
    """Client for the relay's ``POST /api/generate`` endpoint."""

    def __init__(self, base_url: str, timeout: float = 120.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = base_url.rstrip("/") + "/api/generate"
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def stream_plan(self, goal: str) -> AsyncIterator[str]:
        body = {"type": "plan", "payload": {"goal": goal}}
        logger.debug("POST %s plan", self.url)
        try:
            async with self._client() as client:
                async with client.stream("POST", self.url, json=body) as response:
                    if response.is_error:
                        await response.aread()
                        raise ServiceError(_error_message(response, "Failed to start stream."), response.status_code)
                    async for chunk in response.aiter_text():
                        yield chunk
        except httpx.HTTPError as e:
            raise ServiceError(f"Planning request failed: {e}") from e

    async def execute(self, description: str, file: str, file_content: str) -> str:
        body = {
            "type": "execute",
            "payload": {"description": description, "file": file, "fileContent": file_content},
        }
        logger.debug("POST %s execute %s (%d chars in)", self.url, file, len(file_content))
        try:
            async with self._client() as client:
                response = await client.post(self.url, json=body)
        except httpx.HTTPError as e:
            raise ServiceError(f"Execution request failed: {e}") from e

        if response.is_error:
            raise ServiceError(_error_message(response, f"Failed to execute step on {file}."), response.status_code)
        if "application/json" not in response.headers.get("content-type", ""):
            # streaming variant: the body is the new code itself
            return response.text
        try:
            data = response.json()
        except ValueError as e:
            raise ServiceError(f"Execution response is not valid JSON: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("newCode"), str):
            raise ServiceError("Execution response is missing 'newCode'.")
        return data["newCode"]


_DONE = object()


class LLMGenerationService:
    """Runs the model in-process, keeping blocking SDK calls off the event loop."""

    def __init__(self, llm: LLM):
        self.llm = llm

    async def stream_plan(self, goal: str) -> AsyncIterator[str]:
        try:
            chunks = self.llm.stream_plan(goal)
            while True:
                chunk = await asyncio.to_thread(next, chunks, _DONE)
                if chunk is _DONE:
                    break
                yield chunk
        except LLMError as e:
            raise ServiceError(str(e)) from e

    async def execute(self, description: str, file: str, file_content: str) -> str:
        instruction = EditInstruction(description=description, file=file, file_content=file_content)
        try:
            return await asyncio.to_thread(self.llm.generate_code, instruction)
        except LLMError as e:
            raise ServiceError(str(e)) from e
