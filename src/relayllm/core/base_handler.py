"""Base handler: orchestrates one provider call end to end"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Optional, Type, Union

from ..config import GatewayConfig
from ..utils.capability_registry import CapabilityRegistry, ProviderDescriptor
from .base_transformer import BaseTransformer
from .exceptions import CanonicalError, ErrorKind, TransportError, TransportTimeout, invalid_request
from .schema import CanonicalRequest, CanonicalResponse, OperationKind
from .streaming import FragmentStream
from .transport import ProviderError, ProviderRequest, Transport

logger = logging.getLogger(__name__)


class BaseHandler:
    """Per-provider orchestrator combining a transformer with a transport

    One instance serves every call for its provider; it keeps no per-call
    state, so a single instance can be shared across threads.
    """

    transformer_class: ClassVar[Type[BaseTransformer]]

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        registry: CapabilityRegistry,
        transport: Transport,
        config: Optional[GatewayConfig] = None,
        transformer: Optional[BaseTransformer] = None,
    ) -> None:
        self.descriptor = descriptor
        self.provider_name = descriptor.provider_id
        self.registry = registry
        self.transport = transport
        self.config = config or GatewayConfig()
        self.transformer = transformer or self.transformer_class(
            descriptor, self.config.provider(self.provider_name)
        )

    # Entry points --------------------------------------------------------

    def execute(
        self, request: CanonicalRequest, credentials: Any
    ) -> Union[CanonicalResponse, FragmentStream]:
        """Run one call

        Returns a ``CanonicalResponse``, or a ``FragmentStream`` when the
        request asks for streaming. Fine-tuning submissions return a job handle
        immediately; use ``poll`` for progress.

        Raises:
            CanonicalError: For every failure, capability checks first
        """
        if request.stream:
            return self.stream(request, credentials)

        self.registry.resolve(self.provider_name, request.kind)
        if request.kind is OperationKind.fine_tune:
            self.validate_fine_tune(request)

        provider_request = self.transformer.to_provider(request)
        timeout = self.config.timeout_for(self.provider_name, request.timeout)
        logger.debug(
            "%s %s -> %s %s (timeout=%.1fs)",
            self.provider_name,
            request.kind.value,
            provider_request.method,
            provider_request.url,
            timeout,
        )
        return self._send(request.kind, provider_request, credentials, timeout)

    def stream(self, request: CanonicalRequest, credentials: Any) -> FragmentStream:
        """Open a stream of partial responses for a streaming-capable request"""
        self.registry.resolve(self.provider_name, request.kind, stream=True)
        if not request.stream:
            request = request.model_copy(update={"stream": True})

        provider_request = self.transformer.to_provider(request)
        timeout = self.config.timeout_for(self.provider_name, request.timeout)
        logger.debug(
            "%s %s stream -> %s (timeout=%.1fs)",
            self.provider_name,
            request.kind.value,
            provider_request.url,
            timeout,
        )

        try:
            source = self.transport.open_stream(provider_request, credentials, timeout)
        except (TransportTimeout, TimeoutError) as exc:
            raise self._transport_failure(ErrorKind.TIMEOUT, exc) from exc
        except TransportError as exc:
            raise self._transport_failure(ErrorKind.PROVIDER_UNAVAILABLE, exc) from exc

        if isinstance(source, ProviderError):
            raise self._log_error(self.transformer.classify_error(source))

        kind = request.kind
        return FragmentStream(
            source,
            lambda event: self.transformer.from_stream_event(kind, event),
            kind=kind,
            provider=self.provider_name,
            model=request.model,
        )

    def poll(self, job_id: str, credentials: Any) -> CanonicalResponse:
        """Return the current status of a fine-tuning job

        Each poll is an independent read; polling a finished job repeatedly
        reports the same terminal status.
        """
        self.registry.resolve(self.provider_name, OperationKind.fine_tune)
        if not job_id or not str(job_id).strip():
            raise invalid_request("job_id must not be empty")

        provider_request = self.transformer.to_poll_request(str(job_id))
        timeout = self.config.timeout_for(self.provider_name)
        return self._send(OperationKind.fine_tune, provider_request, credentials, timeout)

    # Validation ----------------------------------------------------------

    def validate_fine_tune(self, request: CanonicalRequest) -> None:
        """Check hyperparameters against the provider-declared ranges"""
        spec = request.fine_tune
        if spec is None:
            raise invalid_request("fine_tune requests require a job spec")

        ranges = self.descriptor.hyperparameter_ranges
        for name, value in spec.hyperparameters.items():
            if name not in ranges:
                raise invalid_request(
                    f"Hyperparameter '{name}' is not supported by {self.provider_name}. "
                    f"Supported: {', '.join(sorted(ranges)) or '(none)'}",
                    hyperparameter=name,
                )
            ranges[name].check(name, value)

    # Internals -----------------------------------------------------------

    def _send(
        self,
        kind: OperationKind,
        provider_request: ProviderRequest,
        credentials: Any,
        timeout: float,
    ) -> CanonicalResponse:
        try:
            result = self.transport.send(provider_request, credentials, timeout)
        except (TransportTimeout, TimeoutError) as exc:
            raise self._transport_failure(ErrorKind.TIMEOUT, exc) from exc
        except TransportError as exc:
            raise self._transport_failure(ErrorKind.PROVIDER_UNAVAILABLE, exc) from exc

        try:
            canonical = self.transformer.from_provider(kind, result)
        except CanonicalError as exc:
            raise self._log_error(exc)
        except Exception as exc:
            raise self._log_error(
                CanonicalError(
                    ErrorKind.UNKNOWN,
                    f"Failed to convert {self.provider_name} response: {exc}",
                    provider=self.provider_name,
                )
            ) from exc

        if isinstance(canonical, CanonicalError):
            raise self._log_error(canonical)
        return canonical

    def _transport_failure(self, kind: ErrorKind, exc: BaseException) -> CanonicalError:
        return self._log_error(
            CanonicalError(kind, str(exc) or type(exc).__name__, provider=self.provider_name)
        )

    def _log_error(self, error: CanonicalError) -> CanonicalError:
        logger.warning(
            "%s call failed (%s): %s", self.provider_name, error.kind.value, error.message
        )
        return error
