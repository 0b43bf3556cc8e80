"""Adapters for the built-in providers"""

from typing import Dict, Type

from ..core.base_handler import BaseHandler
from ..types.provider import Provider
from .anthropic import AnthropicHandler, AnthropicTransformer
from .openai import OpenAIHandler, OpenAITransformer
from .vertex_ai import VertexAIHandler, VertexAITransformer

# Fixed registration table: provider -> handler class
HANDLERS: Dict[Provider, Type[BaseHandler]] = {
    Provider.OPENAI: OpenAIHandler,
    Provider.ANTHROPIC: AnthropicHandler,
    Provider.VERTEX_AI: VertexAIHandler,
}

__all__ = [
    "HANDLERS",
    "AnthropicHandler",
    "AnthropicTransformer",
    "OpenAIHandler",
    "OpenAITransformer",
    "VertexAIHandler",
    "VertexAITransformer",
]
