"""
LLM provider adapters.
"""

from .base import Provider
from .openai_compatible import OpenAICompatibleProvider
from .strands_provider import StrandsProvider, create_bedrock_model

__all__ = [
    'Provider',
    'OpenAICompatibleProvider',
    'StrandsProvider',
    'create_bedrock_model'
]
