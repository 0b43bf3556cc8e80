"""Provider capability registry: which providers support which operations"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Union

from ..core.credentials import CredentialShape
from ..core.exceptions import (
    CanonicalError,
    DuplicateProviderError,
    ErrorKind,
    RegistrySealedError,
    unsupported_capability,
)
from ..core.schema import HyperparameterRange, OperationKind, STREAMABLE_KINDS
from ..types.provider import Provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static metadata for one provider

    Attributes:
        provider_id: Unique provider identifier (lower-case)
        operations: Operation kinds the provider serves
        streaming: Subset of ``operations`` that may be streamed
        credential_shape: How the provider authenticates
        endpoint_template: URL template; ``{base_url}`` and ``{path}`` are
            always available, other fields come from provider settings
        default_base_url: Base URL used when settings do not override it
        hyperparameter_ranges: Accepted fine-tuning hyperparameters
    """

    provider_id: str
    operations: FrozenSet[OperationKind]
    credential_shape: CredentialShape
    endpoint_template: str
    default_base_url: str = ""
    streaming: FrozenSet[OperationKind] = frozenset()
    hyperparameter_ranges: Mapping[str, HyperparameterRange] = field(
        default_factory=dict, hash=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "provider_id", _key(self.provider_id))
        object.__setattr__(self, "operations", frozenset(OperationKind(op) for op in self.operations))
        object.__setattr__(self, "streaming", frozenset(OperationKind(op) for op in self.streaming))
        object.__setattr__(
            self, "hyperparameter_ranges", MappingProxyType(dict(self.hyperparameter_ranges))
        )
        if not self.provider_id:
            raise ValueError("provider_id must not be empty")
        if not self.streaming <= self.operations:
            raise ValueError(
                f"{self.provider_id}: streaming operations must also be declared operations"
            )
        if not self.streaming <= STREAMABLE_KINDS:
            raise ValueError(f"{self.provider_id}: only chat/completion can stream")
        if self.hyperparameter_ranges and OperationKind.fine_tune not in self.operations:
            raise ValueError(
                f"{self.provider_id}: hyperparameter ranges require the fine_tune operation"
            )

    def supports(self, operation: Union[OperationKind, str], stream: bool = False) -> bool:
        operation = OperationKind(operation)
        if stream:
            return operation in self.streaming
        return operation in self.operations


def _key(provider_id: Union[Provider, str]) -> str:
    value = provider_id.value if isinstance(provider_id, Provider) else str(provider_id)
    return value.strip().lower()


class CapabilityRegistry:
    """Registry of provider descriptors, populated once at start-up

    Call ``seal()`` after registration; a sealed registry rejects further
    registrations and is safe to share across threads without locking.
    """

    def __init__(self, descriptors: Iterable[ProviderDescriptor] = ()) -> None:
        self._descriptors: Dict[str, ProviderDescriptor] = {}
        self._lock = Lock()
        self._sealed = False
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: ProviderDescriptor) -> None:
        """Register a provider descriptor

        Raises:
            DuplicateProviderError: If the identifier is already registered
            RegistrySealedError: If the registry has been sealed
        """
        if not isinstance(descriptor, ProviderDescriptor):
            raise TypeError(f"Expected ProviderDescriptor, got {type(descriptor).__name__}")

        with self._lock:
            if self._sealed:
                raise RegistrySealedError(descriptor.provider_id)
            if descriptor.provider_id in self._descriptors:
                raise DuplicateProviderError(descriptor.provider_id)
            self._descriptors[descriptor.provider_id] = descriptor
        logger.debug(
            "Registered provider %s: operations=%s",
            descriptor.provider_id,
            sorted(op.value for op in descriptor.operations),
        )

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, provider_id: Union[Provider, str]) -> ProviderDescriptor:
        """Return the descriptor for a provider

        Raises:
            CanonicalError: ``provider_unavailable`` for unknown identifiers
        """
        try:
            return self._descriptors[_key(provider_id)]
        except KeyError:
            raise CanonicalError(
                ErrorKind.PROVIDER_UNAVAILABLE,
                f"Unknown provider: '{provider_id}'. "
                f"Registered providers: {', '.join(self.list_providers()) or '(none)'}",
                provider=_key(provider_id),
            ) from None

    def resolve(
        self,
        provider_id: Union[Provider, str],
        operation: Union[OperationKind, str],
        *,
        stream: bool = False,
    ) -> ProviderDescriptor:
        """Return the descriptor if the provider supports the operation

        Raises:
            CanonicalError: ``provider_unavailable`` for unknown identifiers,
                ``unsupported_capability`` for undeclared operations
        """
        descriptor = self.get(provider_id)
        operation = OperationKind(operation)
        if operation not in descriptor.operations:
            raise unsupported_capability(descriptor.provider_id, operation.value)
        if stream and operation not in descriptor.streaming:
            raise unsupported_capability(descriptor.provider_id, f"{operation.value} streaming")
        return descriptor

    def list_providers(self) -> list[str]:
        return sorted(self._descriptors)

    def is_supported(self, provider_id: Union[Provider, str]) -> bool:
        return _key(provider_id) in self._descriptors

    def __contains__(self, provider_id: object) -> bool:
        return isinstance(provider_id, (str, Provider)) and self.is_supported(provider_id)

    def __len__(self) -> int:
        return len(self._descriptors)


# Built-in provider descriptors
OPENAI_DESCRIPTOR = ProviderDescriptor(
    provider_id=Provider.OPENAI.value,
    operations=frozenset(
        {
            OperationKind.chat,
            OperationKind.completion,
            OperationKind.embedding,
            OperationKind.fine_tune,
        }
    ),
    streaming=frozenset({OperationKind.chat, OperationKind.completion}),
    credential_shape=CredentialShape.bearer_token,
    endpoint_template="{base_url}/{path}",
    default_base_url="https://api.openai.com/v1",
    hyperparameter_ranges={
        "n_epochs": HyperparameterRange(minimum=1, maximum=50, integer=True),
        "batch_size": HyperparameterRange(minimum=1, maximum=256, integer=True),
        "learning_rate_multiplier": HyperparameterRange(minimum=0.01, maximum=10.0),
    },
)

ANTHROPIC_DESCRIPTOR = ProviderDescriptor(
    provider_id=Provider.ANTHROPIC.value,
    operations=frozenset({OperationKind.chat}),
    streaming=frozenset({OperationKind.chat}),
    credential_shape=CredentialShape.api_key_header,
    endpoint_template="{base_url}/{path}",
    default_base_url="https://api.anthropic.com/v1",
)

VERTEX_AI_DESCRIPTOR = ProviderDescriptor(
    provider_id=Provider.VERTEX_AI.value,
    operations=frozenset(
        {
            OperationKind.chat,
            OperationKind.embedding,
            OperationKind.online_predict,
            OperationKind.fine_tune,
        }
    ),
    streaming=frozenset({OperationKind.chat}),
    credential_shape=CredentialShape.oauth_access_token,
    endpoint_template="{base_url}/projects/{project}/locations/{location}/{path}",
    default_base_url="https://{location}-aiplatform.googleapis.com/v1",
    hyperparameter_ranges={
        "n_epochs": HyperparameterRange(minimum=1, maximum=100, integer=True),
        "learning_rate_multiplier": HyperparameterRange(minimum=0.01, maximum=10.0),
    },
)

BUILTIN_DESCRIPTORS = (OPENAI_DESCRIPTOR, ANTHROPIC_DESCRIPTOR, VERTEX_AI_DESCRIPTOR)


def builtin_registry(extra: Iterable[ProviderDescriptor] = ()) -> CapabilityRegistry:
    """Return an unsealed registry holding the built-in descriptors plus ``extra``"""
    registry = CapabilityRegistry(BUILTIN_DESCRIPTORS)
    for descriptor in extra:
        registry.register(descriptor)
    return registry
