"""In-memory transport for tests

``StubTransport`` records every call and answers from queued results.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, Iterator, List, Optional, Union

from ..core.transport import (
    ProviderError,
    ProviderRequest,
    ProviderResponse,
    decode_provider_error,
)


class StubStream:
    """Finite event stream that records whether it was closed

    ``fail_after`` raises ``fail_with`` once that many events were yielded.
    """

    def __init__(
        self,
        events: Iterable[Dict[str, Any]],
        fail_after: Optional[int] = None,
        fail_with: Optional[BaseException] = None,
    ) -> None:
        self.events = list(events)
        self.fail_after = fail_after
        self.fail_with = fail_with
        self.yielded = 0
        self.closed = False

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        for event in self.events:
            if self.closed:
                return
            if self.fail_after is not None and self.yielded >= self.fail_after:
                raise self.fail_with or RuntimeError("stream failed")
            self.yielded += 1
            yield event

    def close(self) -> None:
        self.closed = True


@dataclass
class RecordedCall:
    request: ProviderRequest
    credentials: Any
    timeout: float
    stream: bool = False


StubResult = Union[ProviderResponse, ProviderError, StubStream, BaseException]


class StubTransport:
    """Transport double answering from a queue of prepared results

    A queued exception is raised instead of returned. When the queue holds a
    single result it is reused for every call.
    """

    def __init__(self, *results: StubResult) -> None:
        self.results: Deque[StubResult] = deque(results)
        self.calls: List[RecordedCall] = []

    @classmethod
    def returning(cls, body: Any, status_code: int = 200) -> "StubTransport":
        return cls(ProviderResponse(status_code=status_code, body=body))

    def queue(self, *results: StubResult) -> None:
        self.results.extend(results)

    def _next(self) -> StubResult:
        if not self.results:
            raise AssertionError("StubTransport has no result queued")
        if len(self.results) == 1:
            result = self.results[0]
        else:
            result = self.results.popleft()
        if isinstance(result, BaseException):
            raise result
        return result

    def send(
        self, request: ProviderRequest, credentials: Any, timeout: float
    ) -> Union[ProviderResponse, ProviderError]:
        self.calls.append(RecordedCall(request, credentials, timeout))
        result = self._next()
        if isinstance(result, StubStream):
            raise AssertionError("StubStream queued for a non-streaming call")
        return result

    def open_stream(
        self, request: ProviderRequest, credentials: Any, timeout: float
    ) -> Union[StubStream, ProviderError]:
        self.calls.append(RecordedCall(request, credentials, timeout, stream=True))
        result = self._next()
        if isinstance(result, ProviderResponse):
            raise AssertionError("ProviderResponse queued for a streaming call")
        return result

    @property
    def last_call(self) -> RecordedCall:
        return self.calls[-1]


def provider_error(status_code: int, body: Any = None) -> ProviderError:
    """Decode ``body`` the way ``HttpxTransport`` decodes an HTTP error reply"""
    return decode_provider_error(status_code, json.dumps(body) if body is not None else "")
