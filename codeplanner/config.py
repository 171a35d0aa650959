from __future__ import annotations
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()


class PlannerConfig(BaseModel):
    # DeepSeek (OpenAI-compatible) API configuration
    deepseek_api_key: Optional[str] = Field(None, description="DeepSeek API key for LLM integration")
    deepseek_base_url: str = Field("https://api.deepseek.com", description="DeepSeek API base URL")
    deepseek_model: str = Field("deepseek-coder", description="DeepSeek model to use")
    temperature: float = 0.1

    service_url: Optional[str] = Field(None, description="Base URL of the generation relay; None runs the model in-process.")
    timeout: float = Field(120.0, gt=0, description="Seconds to wait on a single service call.")
    log_level: str = "INFO"

    host: str = "127.0.0.1"
    port: int = 3111

    @classmethod
    def from_env(cls, **overrides) -> "PlannerConfig":
        env = os.environ
        values = {
            "deepseek_api_key": env.get("DEEPSEEK_API_KEY") or None,
            "deepseek_base_url": env.get("DEEPSEEK_BASE_URL", "https://api.deepseek.com"),
            "deepseek_model": env.get("DEEPSEEK_MODEL", "deepseek-coder"),
            "service_url": env.get("CODEPLANNER_SERVICE_URL") or None,
            "timeout": env.get("CODEPLANNER_TIMEOUT", 120.0),
            "log_level": env.get("CODEPLANNER_LOG_LEVEL", "INFO"),
            "host": env.get("CODEPLANNER_HOST", "127.0.0.1"),
            "port": env.get("CODEPLANNER_PORT", 3111),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
