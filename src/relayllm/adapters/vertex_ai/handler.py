"""Vertex AI handler"""

from __future__ import annotations

from ...core.base_handler import BaseHandler
from .transformation import VertexAITransformer


class VertexAIHandler(BaseHandler):
    """Handler for Vertex AI

    Expects ``project`` and ``location`` in the provider settings and an OAuth
    access token as credentials.
    """

    transformer_class = VertexAITransformer
