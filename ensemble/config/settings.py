"""
Environment-driven engine settings.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional


DEFAULT_PROVIDER_PRIORITY = ["ChatGPT", "Claude", "Grok", "Llama"]


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.environ.get(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


@dataclass
class EngineSettings:
    """Settings for the orchestration engine."""
    provider_priority: List[str] = field(default_factory=lambda: list(DEFAULT_PROVIDER_PRIORITY))
    agent_timeout: float = 120.0  # seconds per buffered agent call
    stream_timeout: float = 180.0  # seconds between stream chunks
    context_window: int = 10
    analysis_window: int = 5
    database_url: Optional[str] = None
    context_ttl: float = 300.0  # 5 minutes
    aws_region: str = "us-east-1"
    openai_model: str = "gpt-4o"
    grok_model: str = "grok-2-latest"
    claude_model_id: str = "us.anthropic.claude-3-5-sonnet-20241022-v2:0"
    llama_model_id: str = "us.meta.llama3-3-70b-instruct-v1:0"
    port: int = 8000


def load_settings() -> EngineSettings:
    """
    Build settings from environment variables.

    Returns:
        EngineSettings with environment overrides applied
    """
    defaults = EngineSettings()
    return EngineSettings(
        provider_priority=_env_list("ENSEMBLE_PROVIDER_PRIORITY", defaults.provider_priority),
        agent_timeout=_env_float("ENSEMBLE_AGENT_TIMEOUT", defaults.agent_timeout),
        stream_timeout=_env_float("ENSEMBLE_STREAM_TIMEOUT", defaults.stream_timeout),
        context_window=_env_int("ENSEMBLE_CONTEXT_WINDOW", defaults.context_window),
        analysis_window=_env_int("ENSEMBLE_ANALYSIS_WINDOW", defaults.analysis_window),
        database_url=os.environ.get("ENSEMBLE_DATABASE_URL") or None,
        context_ttl=_env_float("ENSEMBLE_CONTEXT_TTL", defaults.context_ttl),
        aws_region=os.environ.get("AWS_REGION", defaults.aws_region),
        openai_model=os.environ.get("ENSEMBLE_OPENAI_MODEL", defaults.openai_model),
        grok_model=os.environ.get("ENSEMBLE_GROK_MODEL", defaults.grok_model),
        claude_model_id=os.environ.get("ENSEMBLE_CLAUDE_MODEL_ID", defaults.claude_model_id),
        llama_model_id=os.environ.get("ENSEMBLE_LLAMA_MODEL_ID", defaults.llama_model_id),
        port=_env_int("PORT", defaults.port),
    )
