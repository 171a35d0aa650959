from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from openai import OpenAI, OpenAIError

from .config import PlannerConfig
from .errors import LLMError
from .utils import strip_code_fences

logger = logging.getLogger(__name__)

NOT_INITIALIZED = "Model client not initialized. Check server logs for API Key issues."

PLAN_SYSTEM_PROMPT = "You are an expert software architect."
CODE_SYSTEM_PROMPT = "You are an expert software developer."


@dataclass
class EditInstruction:
    description: str
    file: str
    file_content: str  # empty for a new file


def build_plan_prompt(goal: str) -> str:
    return f"""A user wants to achieve this high-level goal: "{goal}".
Your task is to break this down into a sequence of specific, actionable steps that involve creating or modifying files.
Each step must act on exactly one file. Several steps may target the same file; they are applied in order.
Respond ONLY with a valid JSON array of objects, where each object has 'step' (number), 'description' (string), and 'file' (string) keys.
Do not include any other text, explanations, or markdown formatting."""


def build_code_prompt(instruction: EditInstruction) -> str:
    if instruction.file_content:
        current = f"Here is the current content of the file:\n---\n{instruction.file_content}\n---"
    else:
        current = "The file is new and does not exist yet."
    return f"""Your task is to perform the following action: "{instruction.description}".
You are working on the file: "{instruction.file}".
{current}
Your instructions are to provide only the complete, new code for the file "{instruction.file}".
Do not include any explanations, comments about your work, or markdown formatting like ```typescript.
Just return the raw code for the file."""


class LLM:
    """
    DeepSeek API integration for plan decomposition and whole-file code generation.
    Uses OpenAI-compatible API format.
    """
    def __init__(self, config: Optional[PlannerConfig] = None, client: Optional[OpenAI] = None):
        self.config = config or PlannerConfig.from_env()
        if client is not None:
            self.client = client
        elif not self.config.deepseek_api_key:
            logger.warning("DEEPSEEK_API_KEY not found. Model requests will fail until it is set.")
            self.client = None
        else:
            self.client = OpenAI(
                api_key=self.config.deepseek_api_key,
                base_url=self.config.deepseek_base_url,
                timeout=self.config.timeout,
            )

    @property
    def ready(self) -> bool:
        return self.client is not None

    def stream_plan(self, goal: str) -> Iterator[str]:
        """Yield the planning response as it is generated."""
        client = self._require_client()
        logger.info("Generating plan for goal: %r", goal)
        try:
            stream = client.chat.completions.create(
                model=self.config.deepseek_model,
                messages=[
                    {"role": "system", "content": PLAN_SYSTEM_PROMPT},
                    {"role": "user", "content": build_plan_prompt(goal)},
                ],
                temperature=self.config.temperature,
                stream=True,
            )
            for event in stream:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    yield delta
        except OpenAIError as e:
            logger.error(f"DeepSeek API error: {e}")
            raise LLMError(str(e)) from e
        logger.info("Received planning response")

    def generate_plan_text(self, goal: str) -> str:
        return strip_code_fences("".join(self.stream_plan(goal)))

    def generate_code(self, instruction: EditInstruction) -> str:
        client = self._require_client()
        logger.info("Executing step %r on file %s", instruction.description, instruction.file)
        try:
            response = client.chat.completions.create(
                model=self.config.deepseek_model,
                messages=[
                    {"role": "system", "content": CODE_SYSTEM_PROMPT},
                    {"role": "user", "content": build_code_prompt(instruction)},
                ],
                temperature=self.config.temperature,
            )
        except OpenAIError as e:
            logger.error(f"DeepSeek API error: {e}")
            raise LLMError(str(e)) from e
        content = response.choices[0].message.content or ""
        return strip_code_fences(content, everywhere=False)

    def _require_client(self) -> OpenAI:
        if self.client is None:
            raise LLMError(NOT_INITIALIZED)
        return self.client
