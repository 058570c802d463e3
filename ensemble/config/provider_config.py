"""
Provider configuration for the orchestration engine.
"""

import logging
from typing import Callable, Dict

from ensemble.core.provider_registry import ProviderRegistry
from ensemble.models.orchestration_models import ProviderProfile
from ensemble.providers.base import Provider
from ensemble.providers.openai_compatible import OpenAICompatibleProvider
from ensemble.providers.strands_provider import StrandsProvider
from .settings import EngineSettings


logger = logging.getLogger(__name__)


PROVIDER_PROFILES: Dict[str, ProviderProfile] = {
    "ChatGPT": ProviderProfile(
        strengths=["logical analysis", "coding", "mathematics", "general knowledge", "structured answers"],
        specialties=["technical", "conversation"],
        best_for=["single tasks", "clear answers", "writing code", "math problems"],
    ),
    "Claude": ProviderProfile(
        strengths=["deep analysis", "ethical judgment", "long context", "creative writing", "complex reasoning"],
        specialties=["creative", "research", "decision"],
        best_for=["complex analysis", "ethical questions", "long documents", "in-depth discussion"],
        deep_reasoning=True,
    ),
    "Grok": ProviderProfile(
        strengths=["real-time information", "humor", "conversation", "current events", "trends"],
        specialties=["conversation", "research"],
        best_for=["latest news", "casual conversation", "trend analysis", "real-time information"],
    ),
    "Llama": ProviderProfile(
        strengths=["diverse perspectives", "creativity", "research", "broad synthesis"],
        specialties=["research", "creative"],
        best_for=["multi-angle analysis", "brainstorming", "creative work", "research summaries"],
    ),
}


def create_chatgpt_provider(settings: EngineSettings) -> Provider:
    return OpenAICompatibleProvider(
        name="ChatGPT",
        base_url="https://api.openai.com/v1",
        api_key_env="OPENAI_API_KEY",
        model=settings.openai_model,
        profile=PROVIDER_PROFILES["ChatGPT"],
        timeout=settings.agent_timeout,
    )


def create_grok_provider(settings: EngineSettings) -> Provider:
    return OpenAICompatibleProvider(
        name="Grok",
        base_url="https://api.x.ai/v1",
        api_key_env="XAI_API_KEY",
        model=settings.grok_model,
        profile=PROVIDER_PROFILES["Grok"],
        timeout=settings.agent_timeout,
    )


def create_claude_provider(settings: EngineSettings) -> Provider:
    return StrandsProvider(
        name="Claude",
        model_id=settings.claude_model_id,
        profile=PROVIDER_PROFILES["Claude"],
        region_name=settings.aws_region,
    )


def create_llama_provider(settings: EngineSettings) -> Provider:
    return StrandsProvider(
        name="Llama",
        model_id=settings.llama_model_id,
        profile=PROVIDER_PROFILES["Llama"],
        region_name=settings.aws_region,
    )


PROVIDER_FACTORIES: Dict[str, Callable[[EngineSettings], Provider]] = {
    "ChatGPT": create_chatgpt_provider,
    "Claude": create_claude_provider,
    "Grok": create_grok_provider,
    "Llama": create_llama_provider,
}


def create_provider_registry(settings: EngineSettings) -> ProviderRegistry:
    """
    Create a registry holding the configured providers in priority order.

    Args:
        settings: Engine settings

    Returns:
        ProviderRegistry with one entry per known name in the priority list
    """
    registry = ProviderRegistry()
    for name in settings.provider_priority:
        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            logger.warning(f"Unknown provider '{name}' in priority order, skipping")
            continue
        registry.register(factory(settings))
    return registry
