"""Utility components for relayllm"""

from .aliases import ProviderAliases
from .capability_registry import CapabilityRegistry, ProviderDescriptor

__all__ = [
    "ProviderAliases",
    "CapabilityRegistry",
    "ProviderDescriptor",
]
