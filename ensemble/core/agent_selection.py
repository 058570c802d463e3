"""
Capability-based re-optimization of the recommended agent list.
"""

import logging
from typing import List, Optional

from ensemble.models.orchestration_models import (
    MAX_RECOMMENDED_AGENTS,
    Category,
    CollaborationMode,
    Complexity,
    Strategy
)
from .errors import AllProvidersUnavailable
from .provider_registry import ProviderRegistry


logger = logging.getLogger(__name__)


def strongest_for(registry: ProviderRegistry, specialties: List[str]) -> Optional[str]:
    """First available provider, in priority order, having any of the specialties."""
    for provider in registry.available_providers():
        if any(s in provider.profile.specialties for s in specialties):
            return provider.name
    return None


def deep_reasoning_provider(registry: ProviderRegistry) -> Optional[str]:
    for provider in registry.available_providers():
        if provider.profile.deep_reasoning:
            return provider.name
    return None


def optimize_agent_selection(strategy: Strategy, registry: ProviderRegistry) -> List[str]:
    """
    Re-optimize the recommended agents of a strategy.

    Args:
        strategy: Parsed strategy
        registry: Provider registry used for capabilities and availability

    Returns:
        Between 1 and 4 unique names of currently available providers

    Raises:
        AllProvidersUnavailable: If no provider is available at all
    """
    available = registry.available_names()
    if not available:
        raise AllProvidersUnavailable("No available providers to assign")

    mode = strategy.collaboration_mode
    agents = list(dict.fromkeys(strategy.recommended_agents))

    if strategy.category in (Category.TECHNICAL, Category.CONVERSATION):
        technical = strongest_for(registry, [Category.TECHNICAL.value])
        if technical:
            agents = [technical] + [a for a in agents if a != technical]
    elif strategy.category in (Category.RESEARCH, Category.CREATIVE):
        wanted = [Category.RESEARCH.value, Category.CREATIVE.value]
        has_specialist = any(
            registry.get(a) is not None and any(s in registry.get(a).profile.specialties for s in wanted)
            for a in agents
        )
        if not has_specialist:
            specialist = strongest_for(registry, wanted)
            if specialist:
                agents = [specialist] + [a for a in agents if a != specialist]

    if strategy.complexity == Complexity.VERY_COMPLEX and mode != CollaborationMode.SINGLE:
        reasoner = deep_reasoning_provider(registry)
        if reasoner and reasoner not in agents and len(agents) < MAX_RECOMMENDED_AGENTS:
            agents.append(reasoner)

    if mode in (CollaborationMode.DEBATE, CollaborationMode.VOTING):
        # Debate and voting ignore the parsed list
        agents = available[:MAX_RECOMMENDED_AGENTS]

    dropped = [a for a in agents if a not in available]
    if dropped:
        logger.warning(f"Dropping unavailable or unknown agents: {dropped}")
    agents = [a for a in agents if a in available]

    if not agents:
        agents = [available[0]]
        logger.info(f"No recommended agent available, defaulting to {available[0]}")

    return agents[:MAX_RECOMMENDED_AGENTS]
