"""Base transformer class for all provider transformers"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Union

from ..config import ProviderSettings
from ..utils.aliases import ProviderAliases, get_path, set_path
from ..utils.capability_registry import ProviderDescriptor
from .exceptions import CanonicalError, ErrorKind, invalid_request, unsupported_capability
from .schema import (
    CanonicalRequest,
    CanonicalResponse,
    FineTuneJob,
    FinishReason,
    GenerationParameters,
    JobStatus,
    Message,
    OperationKind,
)
from .transport import ProviderError, ProviderRequest, ProviderResponse

logger = logging.getLogger(__name__)

ProviderResult = Union[ProviderResponse, ProviderError]
CanonicalResult = Union[CanonicalResponse, CanonicalError]

# Fallback classification by HTTP status, used when a provider error carries
# no provider-native code.
HTTP_STATUS_CODES: Mapping[int, ErrorKind] = {
    400: ErrorKind.INVALID_REQUEST,
    401: ErrorKind.AUTH_ERROR,
    403: ErrorKind.AUTH_ERROR,
    404: ErrorKind.INVALID_REQUEST,
    408: ErrorKind.TIMEOUT,
    409: ErrorKind.INVALID_REQUEST,
    413: ErrorKind.INVALID_REQUEST,
    422: ErrorKind.INVALID_REQUEST,
    429: ErrorKind.RATE_LIMITED,
    500: ErrorKind.PROVIDER_UNAVAILABLE,
    502: ErrorKind.PROVIDER_UNAVAILABLE,
    503: ErrorKind.PROVIDER_UNAVAILABLE,
    504: ErrorKind.TIMEOUT,
}

# Parameters that change the meaning of a request; they may only be dropped
# when they carry their neutral value.
SEMANTIC_PARAMETER_DEFAULTS: Mapping[str, Any] = {"n": 1}


class BaseTransformer(ABC):
    """Pure mapping between canonical values and one provider's wire format

    Subclasses declare ``alias_table`` (see ``ProviderAliases``), the
    ``error_codes`` table and, optionally, ``status_codes``,
    ``finish_reasons`` and ``job_states``. Transformers perform no I/O and
    hold no per-call state.
    """

    alias_table: str = ""
    error_codes: Mapping[str, ErrorKind] = {}
    status_codes: Mapping[int, ErrorKind] = HTTP_STATUS_CODES
    finish_reasons: Mapping[str, FinishReason] = {}
    job_states: Mapping[str, JobStatus] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        # Error tables must map onto the closed ErrorKind set
        for code, kind in cls.error_codes.items():
            if not isinstance(code, str) or not isinstance(kind, ErrorKind):
                raise TypeError(
                    f"{cls.__name__}.error_codes[{code!r}] must map a str to ErrorKind, "
                    f"got {kind!r}"
                )
        for status, kind in cls.status_codes.items():
            if not isinstance(status, int) or not isinstance(kind, ErrorKind):
                raise TypeError(
                    f"{cls.__name__}.status_codes[{status!r}] must map an int to ErrorKind, "
                    f"got {kind!r}"
                )

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        settings: Optional[ProviderSettings] = None,
    ) -> None:
        self.descriptor = descriptor
        self.provider_name = descriptor.provider_id
        self.settings = settings or ProviderSettings()

    # Outbound ------------------------------------------------------------

    @abstractmethod
    def to_provider(self, request: CanonicalRequest) -> ProviderRequest:
        """Convert a canonical request to the provider wire request"""
        pass

    @abstractmethod
    def to_canonical_request(
        self, kind: OperationKind, body: Mapping[str, Any]
    ) -> CanonicalRequest:
        """Parse a provider request body back into a canonical request"""
        pass

    def to_poll_request(self, job_id: str) -> ProviderRequest:
        """Build the status request for a fine-tuning job"""
        raise unsupported_capability(self.provider_name, OperationKind.fine_tune.value)

    # Inbound -------------------------------------------------------------

    @abstractmethod
    def parse_response(self, kind: OperationKind, body: Any) -> CanonicalResponse:
        """Convert a successful provider body into a canonical response"""
        pass

    def from_provider(self, kind: OperationKind, result: ProviderResult) -> CanonicalResult:
        """Convert a provider response or error into canonical form

        Never raises for provider data: malformed bodies become ``unknown``
        errors.
        """
        if isinstance(result, ProviderError):
            return self.classify_error(result)

        try:
            return self.parse_response(OperationKind(kind), result.body)
        except CanonicalError as exc:
            if exc.provider is not None:
                return exc
            # Canonical model validation rejected provider data
            return self._malformed(result, exc.message)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
            return self._malformed(result, str(exc))

    def _malformed(self, result: ProviderResponse, reason: str) -> CanonicalError:
        logger.warning("Malformed %s response: %s", self.provider_name, reason)
        return CanonicalError(
            ErrorKind.UNKNOWN,
            f"Malformed {self.provider_name} response: {reason}",
            provider_status=result.status_code,
            provider=self.provider_name,
        )

    def from_stream_event(
        self, kind: OperationKind, event: Mapping[str, Any]
    ) -> Optional[CanonicalResult]:
        """Convert one decoded stream event

        Returns a partial response, a canonical error, or ``None`` for
        bookkeeping events that carry nothing for the caller.
        """
        raise unsupported_capability(self.provider_name, f"{kind.value} streaming")

    def classify_error(self, error: ProviderError) -> CanonicalError:
        """Map a provider error onto exactly one canonical error kind

        A provider-native code is looked up in ``error_codes``; without one, the
        HTTP status is looked up in ``status_codes``. Anything unmapped is
        ``unknown``.
        """
        if error.code is not None:
            kind = self.error_codes.get(error.code, ErrorKind.UNKNOWN)
        elif error.status_code is not None:
            kind = self.status_codes.get(error.status_code, ErrorKind.UNKNOWN)
        else:
            kind = ErrorKind.UNKNOWN

        return CanonicalError(
            kind,
            error.message or f"{self.provider_name} error {error.code or error.status_code}",
            provider_status=error.status_code if error.status_code is not None else error.code,
            provider=self.provider_name,
            details={"code": error.code} if error.code else None,
        )

    def parse_job(self, body: Mapping[str, Any]) -> FineTuneJob:
        raise unsupported_capability(self.provider_name, OperationKind.fine_tune.value)

    # Helpers -------------------------------------------------------------

    def _template_values(self) -> Dict[str, Any]:
        return {
            "project": self.settings.project or "",
            "location": self.settings.location or "",
        }

    @property
    def base_url(self) -> str:
        """Configured base URL, falling back to the descriptor default"""
        template = self.settings.base_url or self.descriptor.default_base_url
        return template.format(**self._template_values()).rstrip("/")

    def endpoint(self, path: str) -> str:
        """Expand the descriptor's endpoint template for ``path``"""
        return self.descriptor.endpoint_template.format(
            base_url=self.base_url, path=path.lstrip("/"), **self._template_values()
        )

    def map_parameters(
        self, parameters: GenerationParameters, kind: OperationKind
    ) -> Dict[str, Any]:
        """Map canonical generation parameters into a (nested) provider dict

        Parameters without a provider equivalent are dropped with a warning;
        semantically significant ones (``n > 1``) fail with InvalidRequest.
        """
        aliases = ProviderAliases.get_provider_aliases(self.alias_table, kind.value)
        mapped: Dict[str, Any] = {}
        for name, value in parameters.set_fields().items():
            path = aliases.get(name)
            if path is None:
                self._drop_parameter(name, value, kind)
                continue
            if isinstance(value, tuple):
                value = list(value)
            set_path(mapped, path, value)
        return mapped

    def _drop_parameter(self, name: str, value: Any, kind: OperationKind) -> None:
        if name in SEMANTIC_PARAMETER_DEFAULTS and value != SEMANTIC_PARAMETER_DEFAULTS[name]:
            raise invalid_request(
                f"Parameter '{name}={value!r}' has no {self.provider_name} equivalent "
                f"for '{kind.value}'",
                parameter=name,
            )
        logger.warning(
            "Dropping parameter '%s' unsupported by %s for '%s'",
            name,
            self.provider_name,
            kind.value,
        )

    def parameters_from_body(
        self, body: Mapping[str, Any], kind: OperationKind
    ) -> GenerationParameters:
        """Reverse of ``map_parameters``"""
        aliases = ProviderAliases.get_provider_aliases(self.alias_table, kind.value)
        found: Dict[str, Any] = {}
        for name, path in aliases.items():
            value = get_path(body, path)
            if value is not None:
                found[name] = tuple(value) if isinstance(value, list) else value
        return GenerationParameters(**found)

    def supported_parameters(self, request: CanonicalRequest) -> Dict[str, Any]:
        """Canonical parameters of ``request`` that survive ``to_provider``"""
        aliases = ProviderAliases.get_provider_aliases(self.alias_table, request.kind.value)
        return {
            name: value
            for name, value in request.parameters.set_fields().items()
            if name in aliases
        }

    def map_finish_reason(self, raw: Optional[str]) -> Optional[FinishReason]:
        if raw is None:
            return None
        return self.finish_reasons.get(raw, FinishReason.other)

    def map_job_state(self, raw: Optional[str]) -> JobStatus:
        if raw is None:
            return JobStatus.pending
        try:
            return self.job_states[raw]
        except KeyError:
            raise CanonicalError(
                ErrorKind.UNKNOWN,
                f"Unrecognized {self.provider_name} job state: {raw!r}",
                provider=self.provider_name,
            ) from None

    def require_text(self, request: CanonicalRequest) -> List[str]:
        """Text of every message, failing for structured contents"""
        texts = []
        for message in request.messages:
            if not isinstance(message.content, str):
                raise invalid_request(
                    f"'{request.kind.value}' requests to {self.provider_name} "
                    "accept text content only"
                )
            texts.append(message.content)
        return texts

    def check_round_trip(self, request: CanonicalRequest) -> bool:
        """Whether the provider's echo of ``request`` parses back equivalently

        Compares model, kind, messages and the parameters the provider can
        express; provider-specific bookkeeping is ignored.
        """
        echo = self.to_canonical_request(request.kind, self.round_trip_body(request))
        return (
            echo.kind == request.kind
            and echo.model == request.model
            and echo.parameters.set_fields() == self.supported_parameters(request)
            and _message_pairs(echo.messages) == _message_pairs(request.messages)
        )

    def round_trip_body(self, request: CanonicalRequest) -> Dict[str, Any]:
        """Provider body echoed back by ``check_round_trip``"""
        return dict(self.to_provider(request).body or {})


def _message_pairs(messages: Any) -> List[Any]:
    return [(message.role, message.content) for message in messages]


def messages_from_texts(texts: List[str], role: str = "user") -> List[Message]:
    return [Message(role=role, content=text) for text in texts]
