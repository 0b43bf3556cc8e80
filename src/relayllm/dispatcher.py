"""Single entry point routing canonical requests to provider handlers"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Type, Union

from .adapters import HANDLERS
from .config import GatewayConfig
from .core.base_handler import BaseHandler
from .core.credentials import CredentialSource, EnvCredentialSource
from .core.exceptions import CanonicalError, ErrorKind
from .core.schema import CanonicalRequest, CanonicalResponse
from .core.streaming import FragmentStream
from .core.transport import HttpxTransport, Transport
from .types.provider import Provider
from .utils.capability_registry import CapabilityRegistry, ProviderDescriptor, builtin_registry

logger = logging.getLogger(__name__)

ExtraProvider = Tuple[ProviderDescriptor, Type[BaseHandler]]


class Dispatcher:
    """Route requests to the handler registered for a provider

    Args:
        registry: Capability registry (normally sealed)
        handlers: Provider id -> handler instance
        credentials: Source asked for credentials when a call passes none
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        handlers: Mapping[str, BaseHandler],
        credentials: Optional[CredentialSource] = None,
    ) -> None:
        self.registry = registry
        self._handlers: Dict[str, BaseHandler] = {
            (key.value if isinstance(key, Provider) else key).lower(): handler
            for key, handler in handlers.items()
        }
        self.credentials = credentials or EnvCredentialSource()

    def dispatch(
        self,
        provider_id: Union[Provider, str],
        request: CanonicalRequest,
        credentials: Any = None,
    ) -> Union[CanonicalResponse, FragmentStream]:
        """Execute ``request`` against ``provider_id``

        Returns a ``FragmentStream`` for streaming requests. Errors propagate
        as the ``CanonicalError`` raised by the registry or handler.
        """
        handler = self._handler_for(provider_id, request)
        descriptor = handler.descriptor
        logger.info("Dispatching %s request to %s", request.kind.value, descriptor.provider_id)
        return handler.execute(request, self._credentials(descriptor, credentials))

    def poll(
        self,
        provider_id: Union[Provider, str],
        job_id: str,
        credentials: Any = None,
    ) -> CanonicalResponse:
        """Return the current state of a fine-tuning job"""
        descriptor = self.registry.get(provider_id)
        handler = self._handler(descriptor)
        return handler.poll(job_id, self._credentials(descriptor, credentials))

    def list_providers(self) -> list[str]:
        return self.registry.list_providers()

    def _handler_for(
        self, provider_id: Union[Provider, str], request: CanonicalRequest
    ) -> BaseHandler:
        # Capability checks run before credentials are looked up
        descriptor = self.registry.resolve(provider_id, request.kind, stream=request.stream)
        return self._handler(descriptor)

    def _handler(self, descriptor: ProviderDescriptor) -> BaseHandler:
        handler = self._handlers.get(descriptor.provider_id)
        if handler is None:
            raise CanonicalError(
                ErrorKind.PROVIDER_UNAVAILABLE,
                f"No handler registered for provider '{descriptor.provider_id}'",
                provider=descriptor.provider_id,
            )
        return handler

    def _credentials(self, descriptor: ProviderDescriptor, credentials: Any) -> Any:
        if credentials is not None:
            return credentials
        return self.credentials.get(descriptor.credential_shape, descriptor.provider_id)


def build_dispatcher(
    config: Optional[GatewayConfig] = None,
    transport: Optional[Transport] = None,
    credentials: Optional[CredentialSource] = None,
    extra: Iterable[ExtraProvider] = (),
) -> Dispatcher:
    """Build a dispatcher over the built-in providers plus ``extra``

    ``extra`` pairs a descriptor with the handler class serving it, which lets
    OpenAI-compatible providers reuse ``OpenAIHandler``. The registry is sealed
    before the dispatcher is returned.
    """
    config = config or GatewayConfig()
    transport = transport or HttpxTransport()
    extra = list(extra)

    registry = builtin_registry(descriptor for descriptor, _ in extra)
    registry.seal()

    handler_classes: Dict[str, Type[BaseHandler]] = {
        provider.value: handler_class for provider, handler_class in HANDLERS.items()
    }
    for descriptor, handler_class in extra:
        handler_classes[descriptor.provider_id] = handler_class

    handlers = {
        provider_id: handler_class(registry.get(provider_id), registry, transport, config)
        for provider_id, handler_class in handler_classes.items()
    }
    credentials = credentials or EnvCredentialSource(config.credential_env_vars())
    logger.debug("Built dispatcher for providers: %s", ", ".join(registry.list_providers()))
    return Dispatcher(registry, handlers, credentials)
