"""relayllm exception classes and the closed canonical error taxonomy"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of canonical error kinds callers can branch on"""

    AUTH_ERROR = "auth_error"
    RATE_LIMITED = "rate_limited"
    INVALID_REQUEST = "invalid_request"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    UNSUPPORTED_CAPABILITY = "unsupported_capability"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


_RETRYABLE_KINDS = frozenset(
    {ErrorKind.RATE_LIMITED, ErrorKind.PROVIDER_UNAVAILABLE, ErrorKind.TIMEOUT}
)


class RelayError(Exception):
    """Base exception for all relayllm errors"""
    pass


class CanonicalError(RelayError):
    """Provider-agnostic error returned or raised at the handler boundary

    Attributes:
        kind: Canonical error kind
        message: Human-readable description
        provider_status: Provider-native status code, passed through opaquely
        provider: Provider identifier the error originated from, if any
        details: Extra diagnostic data (never parsed by callers)
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        provider_status: Any = None,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.kind = ErrorKind(kind)
        self.message = message
        self.provider_status = provider_status
        self.provider = provider
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        """Whether a caller may reasonably retry the same call later"""
        return self.kind in _RETRYABLE_KINDS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "provider_status": self.provider_status,
        }

    def __str__(self) -> str:
        prefix = f"{self.provider}: " if self.provider else ""
        return f"{prefix}{self.kind.value}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"CanonicalError(kind={self.kind.value!r}, message={self.message!r}, "
            f"provider_status={self.provider_status!r}, provider={self.provider!r})"
        )


class DuplicateProviderError(RelayError):
    """Raised when a provider identifier is registered twice"""

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"Provider already registered: '{provider_id}'")


class RegistrySealedError(RelayError):
    """Raised when the capability registry is mutated after start-up"""

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(
            f"Cannot register '{provider_id}': the capability registry is sealed"
        )


class TransportError(RelayError):
    """Raised by a transport when the provider could not be reached"""
    pass


class TransportTimeout(TransportError):
    """Raised by a transport when the call exceeded its timeout"""
    pass


def invalid_request(message: str, **details: Any) -> CanonicalError:
    """Shortcut for the most common canonical error"""
    return CanonicalError(ErrorKind.INVALID_REQUEST, message, details=details or None)


def unsupported_capability(
    provider: str, capability: str, details: Optional[Dict[str, Any]] = None
) -> CanonicalError:
    return CanonicalError(
        ErrorKind.UNSUPPORTED_CAPABILITY,
        f"Provider '{provider}' does not support: '{capability}'",
        provider=provider,
        details=details,
    )
