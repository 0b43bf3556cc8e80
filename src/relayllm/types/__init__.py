"""Shared enumerations"""

from .provider import Provider

__all__ = ["Provider"]
