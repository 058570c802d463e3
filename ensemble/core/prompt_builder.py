"""
System prompt assembly for collaboration agents.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ensemble.config.prompts import (
    GENERAL_MODE_NOTE,
    PERSONA_PROMPT,
    PROJECT_CONTEXT_TEMPLATE,
    REFERENCE_CONTEXT_TEMPLATE,
    SEARCH_CONTEXT_TEMPLATE,
    SEARCH_SOURCE_TEMPLATE
)
from .cache import TTLCache


logger = logging.getLogger(__name__)


ReferenceLoader = Callable[[str], Awaitable[str]]


def format_search_context(search_results: Optional[List[Dict[str, Any]]]) -> str:
    """Render search results as numbered sources, or an empty string."""
    if not search_results:
        return ""
    sources = "\n\n".join(
        SEARCH_SOURCE_TEMPLATE.format(
            number=index + 1,
            title=result.get("title") or "Untitled",
            link=result.get("link") or result.get("url") or "",
            snippet=result.get("snippet") or ""
        )
        for index, result in enumerate(search_results)
    )
    return SEARCH_CONTEXT_TEMPLATE.format(sources=sources)


class SystemPromptBuilder:
    """
    Builds agent system prompts.

    Project context goes first, then the persona, then web search context.
    An optional per-user reference loader (what is remembered about the
    user) is cached for ``ttl`` seconds per user.
    """

    def __init__(
        self,
        persona: str = PERSONA_PROMPT,
        reference_loader: Optional[ReferenceLoader] = None,
        cache: Optional[TTLCache] = None,
        ttl: float = 300.0
    ):
        self.persona = persona
        self.reference_loader = reference_loader
        self.cache = cache or TTLCache(ttl)

    async def _reference_context(self, user_id: Optional[str]) -> str:
        if self.reference_loader is None or not user_id:
            return ""

        async def load():
            return await self.reference_loader(user_id)

        try:
            return await self.cache.get_or_load(("reference", user_id), load) or ""
        except Exception as e:
            logger.warning(f"Reference context unavailable for {user_id}: {e}")
            return ""

    async def build(
        self,
        user_id: Optional[str] = None,
        project_context: Optional[str] = None,
        search_results: Optional[List[Dict[str, Any]]] = None
    ) -> str:
        """
        Assemble the system prompt.

        Args:
            user_id: User whose reference context is included
            project_context: Optional project or document context
            search_results: Optional web search results

        Returns:
            The full system prompt text
        """
        prompt = self.persona

        reference = await self._reference_context(user_id)
        if reference:
            prompt += REFERENCE_CONTEXT_TEMPLATE.format(reference_context=reference)

        if project_context:
            prompt = PROJECT_CONTEXT_TEMPLATE.format(project_context=project_context) + "\n\n" + prompt
        else:
            prompt += GENERAL_MODE_NOTE

        prompt += format_search_context(search_results)
        return prompt
