from __future__ import annotations

import json

import httpx
import pytest

from codeplanner.client import HTTPGenerationService, LLMGenerationService
from codeplanner.errors import LLMError, ServiceError
from codeplanner.llm import EditInstruction


def _service(handler) -> HTTPGenerationService:
    return HTTPGenerationService("http://relay.test/", transport=httpx.MockTransport(handler))


async def _collect(stream) -> str:
    return "".join([chunk async for chunk in stream])


@pytest.mark.asyncio
async def test_stream_plan_posts_goal_and_yields_body() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text='[{"step": 1, "description": "x", "file": "a.py"}]')

    text = await _collect(_service(handler).stream_plan("make it"))

    assert seen["url"] == "http://relay.test/api/generate"
    assert seen["body"] == {"type": "plan", "payload": {"goal": "make it"}}
    assert json.loads(text)[0]["file"] == "a.py"


@pytest.mark.asyncio
async def test_stream_plan_error_uses_details() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Failed to process request", "details": "quota exceeded"})

    with pytest.raises(ServiceError, match="quota exceeded") as exc:
        await _collect(_service(handler).stream_plan("g"))
    assert exc.value.status_code == 500


@pytest.mark.asyncio
async def test_stream_plan_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ServiceError, match="connection refused"):
        await _collect(_service(handler).stream_plan("g"))


@pytest.mark.asyncio
async def test_execute_json_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body == {
            "type": "execute",
            "payload": {"description": "add fn", "file": "a.ts", "fileContent": "old"},
        }
        return httpx.Response(200, json={"newCode": "new"})

    assert await _service(handler).execute("add fn", "a.ts", "old") == "new"


@pytest.mark.asyncio
async def test_execute_raw_text_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="export const x = 1;\n")

    assert await _service(handler).execute("d", "x.ts", "") == "export const x = 1;\n"


@pytest.mark.asyncio
async def test_execute_error_without_details() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(ServiceError, match="HTTP 502"):
        await _service(handler).execute("d", "x.ts", "")


@pytest.mark.asyncio
async def test_execute_missing_new_code() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "x"})

    with pytest.raises(ServiceError, match="newCode"):
        await _service(handler).execute("d", "x.ts", "")


class FakeLLM:
    def __init__(self, chunks=(), code: str = "", error: str | None = None) -> None:
        self.chunks = list(chunks)
        self.code = code
        self.error = error
        self.instructions: list[EditInstruction] = []

    def stream_plan(self, goal: str):
        if self.error:
            raise LLMError(self.error)
        yield from self.chunks

    def generate_code(self, instruction: EditInstruction) -> str:
        self.instructions.append(instruction)
        if self.error:
            raise LLMError(self.error)
        return self.code


@pytest.mark.asyncio
async def test_in_process_service_streams_chunks() -> None:
    service = LLMGenerationService(FakeLLM(chunks=["[", "]"]))
    assert [c async for c in service.stream_plan("g")] == ["[", "]"]


@pytest.mark.asyncio
async def test_in_process_service_execute() -> None:
    llm = FakeLLM(code="done")
    assert await LLMGenerationService(llm).execute("d", "f.py", "old") == "done"
    assert llm.instructions == [EditInstruction(description="d", file="f.py", file_content="old")]


@pytest.mark.asyncio
async def test_in_process_service_translates_errors() -> None:
    service = LLMGenerationService(FakeLLM(error="no key"))
    with pytest.raises(ServiceError, match="no key"):
        await _collect(service.stream_plan("g"))
    with pytest.raises(ServiceError, match="no key"):
        await service.execute("d", "f", "")


@pytest.mark.asyncio
async def test_execute_json_content_type_with_bad_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops", headers={"content-type": "application/json"})

    with pytest.raises(ServiceError, match="not valid JSON"):
        await _service(handler).execute("d", "x.ts", "")
