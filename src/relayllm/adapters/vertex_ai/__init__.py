"""Vertex AI adapter"""

from .handler import VertexAIHandler
from .transformation import VertexAITransformer

__all__ = ["VertexAIHandler", "VertexAITransformer"]
