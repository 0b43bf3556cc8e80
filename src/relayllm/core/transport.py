"""Transport collaborator contract and the default httpx implementation

The core depends only on the ``Transport`` protocol. ``HttpxTransport`` is the
stock implementation used by ``build_dispatcher``; tests use the stub in
``relayllm.fixtures.transport``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Protocol, Union, runtime_checkable

import httpx

from ..log import truncate
from .exceptions import TransportError, TransportTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderRequest:
    """Provider wire request produced by a transformer"""

    method: str
    url: str
    body: Optional[Dict[str, Any]] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    stream: bool = False


@dataclass(frozen=True)
class ProviderResponse:
    """Successful provider reply (2xx) with a decoded JSON body"""

    status_code: int
    body: Any
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderError:
    """Provider-reported failure

    Attributes:
        status_code: HTTP status, when the provider answered at all
        code: Provider-native error code (e.g. ``rate_limit_exceeded``)
        message: Provider error message
        body: Undecoded/decoded error body for diagnostics
    """

    status_code: Optional[int] = None
    code: Optional[str] = None
    message: str = ""
    body: Any = None


ProviderResult = Union[ProviderResponse, ProviderError]


@runtime_checkable
class TransportStream(Protocol):
    """Iterator of decoded provider stream events with an explicit release"""

    closed: bool

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Transport(Protocol):
    """Narrow contract the handlers use to reach a provider

    Implementations own retries and connection management. A call that runs
    out of time raises ``TransportTimeout``; a provider that cannot be reached
    raises ``TransportError``. Provider-level failures are returned as
    ``ProviderError`` values.
    """

    def send(
        self, request: ProviderRequest, credentials: Any, timeout: float
    ) -> ProviderResult:
        ...

    def open_stream(
        self, request: ProviderRequest, credentials: Any, timeout: float
    ) -> Union[TransportStream, ProviderError]:
        ...


def _auth_headers(credentials: Any) -> Dict[str, str]:
    if credentials is None:
        return {}
    return dict(credentials.auth_headers())


def decode_provider_error(status_code: int, raw: bytes | str) -> ProviderError:
    """Build a ProviderError from an HTTP error body

    Understands the three error envelopes in use:
    ``{"error": {"code": ..., "message": ...}}`` (OpenAI),
    ``{"type": "error", "error": {"type": ..., "message": ...}}`` (Anthropic) and
    ``{"error": {"code": 429, "status": "RESOURCE_EXHAUSTED", ...}}`` (Google).
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    try:
        payload = json.loads(text) if text else None
    except json.JSONDecodeError:
        payload = None

    code = None
    message = text
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            # Google uses a numeric code plus a symbolic status
            if isinstance(err.get("status"), str):
                code = err["status"]
            elif isinstance(err.get("code"), str):
                code = err["code"]
            elif isinstance(err.get("type"), str):
                code = err["type"]
            message = err.get("message") or message
        elif isinstance(err, str):
            message = err

    return ProviderError(
        status_code=status_code,
        code=code,
        message=message or "",
        body=payload if payload is not None else text,
    )


class HttpxStream:
    """SSE event stream over an open httpx response"""

    def __init__(self, response: httpx.Response, provider_url: str) -> None:
        self._response = response
        self._url = provider_url
        self.closed = False

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        if self.closed:
            return
        try:
            for line in self._response.iter_lines():
                if self.closed:
                    return
                if not line:
                    continue
                event_payload = line.strip()
                if event_payload.startswith(("event:", ":")):
                    continue
                if event_payload.startswith("data:"):
                    event_payload = event_payload.split("data:", 1)[1].strip()
                if not event_payload:
                    continue
                if event_payload in {"[DONE]", "[done]"}:
                    return
                try:
                    yield json.loads(event_payload)
                except json.JSONDecodeError:
                    # Skip malformed lines to keep the stream alive
                    logger.debug("Skipping malformed stream line from %s", self._url)
                    continue
        except httpx.TimeoutException as exc:
            raise TransportTimeout(f"Stream from {self._url} timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"Stream from {self._url} failed: {exc}") from exc
        finally:
            self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._response.close()


class HttpxTransport:
    """Transport backed by a shared ``httpx.Client``"""

    def __init__(self, client: Optional[httpx.Client] = None) -> None:
        self._client = client or httpx.Client()

    def _headers(self, request: ProviderRequest, credentials: Any, accept: str) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": accept,
        }
        headers.update(_auth_headers(credentials))
        headers.update(request.headers)
        return headers

    def send(
        self, request: ProviderRequest, credentials: Any, timeout: float
    ) -> ProviderResult:
        headers = self._headers(request, credentials, "application/json")
        try:
            response = self._client.request(
                request.method,
                request.url,
                headers=headers,
                json=request.body,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportTimeout(f"{request.method} {request.url} timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"{request.method} {request.url} failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "Provider error %s from %s: %s",
                response.status_code,
                request.url,
                truncate(response.text or response.reason_phrase or ""),
            )
            return decode_provider_error(response.status_code, response.content)

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}
        return ProviderResponse(
            status_code=response.status_code,
            body=body,
            headers=dict(response.headers),
        )

    def open_stream(
        self, request: ProviderRequest, credentials: Any, timeout: float
    ) -> Union[TransportStream, ProviderError]:
        headers = self._headers(request, credentials, "text/event-stream")
        http_request = self._client.build_request(
            request.method,
            request.url,
            headers=headers,
            json=request.body,
            timeout=timeout,
        )
        try:
            response = self._client.send(http_request, stream=True)
        except httpx.TimeoutException as exc:
            raise TransportTimeout(f"Stream to {request.url} timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"Stream to {request.url} failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                error_body = response.read()
            finally:
                response.close()
            logger.error(
                "Provider stream error %s from %s: %s",
                response.status_code,
                request.url,
                truncate(error_body.decode("utf-8", errors="replace")),
            )
            return decode_provider_error(response.status_code, error_body)

        return HttpxStream(response, request.url)

    def close(self) -> None:
        self._client.close()
