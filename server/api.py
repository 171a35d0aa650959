from __future__ import annotations
import itertools
import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ValidationError

from codeplanner import __version__
from codeplanner.config import PlannerConfig
from codeplanner.errors import CodePlannerError
from codeplanner.llm import LLM, NOT_INITIALIZED, EditInstruction
from codeplanner.parser import parse_plan
from codeplanner.plan import plan_to_json
from codeplanner.utils import setup_logging

logger = logging.getLogger("codeplanner.server")

app = FastAPI(title="CodePlanner relay", version=__version__)


class GenerateIn(BaseModel):
    type: str
    payload: dict = {}


class PlanPayload(BaseModel):
    goal: str
    stream: bool = True


class ExecutePayload(BaseModel):
    description: str
    file: str
    fileContent: str = ""


@app.on_event("startup")
def startup():
    cfg = PlannerConfig.from_env()
    setup_logging(cfg.log_level)
    app.state.cfg = cfg
    app.state.llm = LLM(cfg)


def get_llm(request: Request) -> Optional[LLM]:
    return getattr(request.app.state, "llm", None)


def _error(status: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body: dict[str, Any] = {"error": error}
    if details:
        body["details"] = details
    return JSONResponse(body, status_code=status)


def _plan(llm: LLM, payload: PlanPayload):
    if not payload.stream:
        plan = parse_plan(llm.generate_plan_text(payload.goal))
        return {"plan": plan_to_json(plan)}

    chunks = llm.stream_plan(payload.goal)
    # pull the first chunk here so model errors still become a JSON error response
    first = next(chunks, None)
    body = chunks if first is None else itertools.chain([first], chunks)
    return StreamingResponse(body, media_type="text/plain; charset=utf-8")


def _execute(llm: LLM, payload: ExecutePayload):
    instruction = EditInstruction(
        description=payload.description, file=payload.file, file_content=payload.fileContent,
    )
    return {"newCode": llm.generate_code(instruction)}


@app.post("/api/generate")
def generate(inp: GenerateIn, llm: Optional[LLM] = Depends(get_llm)):
    logger.info("Request type: %s", inp.type)
    if inp.type not in ("plan", "execute"):
        return _error(400, "Invalid request type")
    if llm is None or not llm.ready:
        logger.error("Aborting request because the model client failed to initialize.")
        return _error(500, NOT_INITIALIZED)

    try:
        if inp.type == "plan":
            return _plan(llm, PlanPayload(**inp.payload))
        return _execute(llm, ExecutePayload(**inp.payload))
    except ValidationError as e:
        return _error(400, "Invalid payload", str(e))
    except CodePlannerError as e:
        logger.error("Error in generate handler: %s", e)
        return _error(500, "Failed to process request", str(e) or "An unknown error occurred")
    except Exception as e:
        logger.exception("Unexpected error in generate handler")
        return _error(500, "Failed to process request", str(e) or "An unknown error occurred")


@app.get("/health")
def health():
    return {"ok": True}
