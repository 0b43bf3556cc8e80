"""RelayLLM - Canonical gateway to heterogeneous LLM providers

Callers describe requests once in a provider-neutral form; the dispatcher
checks provider capabilities, translates to the provider's wire format and
normalizes responses, streams and errors back.
"""

from .config import GatewayConfig, ProviderSettings, load_config
from .core import (
    CanonicalError,
    CanonicalRequest,
    CanonicalResponse,
    ErrorKind,
    FineTuneJobSpec,
    GenerationParameters,
    Message,
    OperationKind,
)
from .core.streaming import FragmentStream
from .dispatcher import Dispatcher, build_dispatcher
from .log import configure_logging
from .types import Provider
from .utils.capability_registry import CapabilityRegistry, ProviderDescriptor

__version__ = "0.1.0"
__all__ = [
    "CanonicalError",
    "CanonicalRequest",
    "CanonicalResponse",
    "CapabilityRegistry",
    "Dispatcher",
    "ErrorKind",
    "FineTuneJobSpec",
    "FragmentStream",
    "GatewayConfig",
    "GenerationParameters",
    "Message",
    "OperationKind",
    "Provider",
    "ProviderDescriptor",
    "ProviderSettings",
    "build_dispatcher",
    "configure_logging",
    "load_config",
]
