"""Core components for relayllm

Only leaf modules are re-exported here; import ``base_transformer`` and
``base_handler`` from their modules.
"""

from .exceptions import (
    CanonicalError,
    DuplicateProviderError,
    ErrorKind,
    RegistrySealedError,
    RelayError,
    TransportError,
    TransportTimeout,
)
from .schema import (
    CanonicalRequest,
    CanonicalResponse,
    FineTuneJob,
    FineTuneJobSpec,
    FinishReason,
    GenerationParameters,
    HyperparameterRange,
    JobStatus,
    Message,
    OperationKind,
    ResultItem,
    Role,
    UsageStatistics,
)

__all__ = [
    "CanonicalError",
    "DuplicateProviderError",
    "ErrorKind",
    "RegistrySealedError",
    "RelayError",
    "TransportError",
    "TransportTimeout",
    "CanonicalRequest",
    "CanonicalResponse",
    "FineTuneJob",
    "FineTuneJobSpec",
    "FinishReason",
    "GenerationParameters",
    "HyperparameterRange",
    "JobStatus",
    "Message",
    "OperationKind",
    "ResultItem",
    "Role",
    "UsageStatistics",
]
