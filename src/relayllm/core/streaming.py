"""Cancellable lazy sequence of canonical stream fragments"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from .exceptions import CanonicalError, ErrorKind, TransportError, TransportTimeout
from .schema import CanonicalResponse, FinishReason, OperationKind, ResultItem, UsageStatistics
from .transport import TransportStream

logger = logging.getLogger(__name__)

EventConverter = Callable[[Dict[str, Any]], Union[CanonicalResponse, CanonicalError, None]]


class FragmentStream:
    """Finite, non-restartable iterator of partial ``CanonicalResponse`` objects

    The underlying transport stream is released when the sequence is exhausted,
    when a failure is raised, or when the consumer calls ``close()``/``cancel()``
    (also on leaving a ``with`` block). Once closed no further fragments are
    delivered.
    """

    def __init__(
        self,
        source: TransportStream,
        convert: EventConverter,
        *,
        kind: OperationKind,
        provider: str,
        model: Optional[str] = None,
    ) -> None:
        self._source = source
        self._convert = convert
        self._events: Optional[Iterator[Dict[str, Any]]] = None
        self.kind = kind
        self.provider = provider
        self.model = model
        self.delivered = 0
        self.closed = False
        self.cancel_reason: Optional[str] = None

    def __iter__(self) -> "FragmentStream":
        return self

    def __next__(self) -> CanonicalResponse:
        while True:
            if self.closed:
                raise StopIteration
            if self._events is None:
                self._events = iter(self._source)

            try:
                event = next(self._events)
            except StopIteration:
                self.close()
                raise
            except (TransportTimeout, TimeoutError) as exc:
                self.close()
                raise CanonicalError(
                    ErrorKind.TIMEOUT, str(exc), provider=self.provider
                ) from exc
            except TransportError as exc:
                self.close()
                raise CanonicalError(
                    ErrorKind.PROVIDER_UNAVAILABLE, str(exc), provider=self.provider
                ) from exc

            try:
                result = self._convert(event)
            except CanonicalError as exc:
                self.close()
                if exc.provider is not None:
                    raise
                # Canonical model validation rejected the event
                raise CanonicalError(
                    ErrorKind.UNKNOWN,
                    f"Malformed stream event: {exc.message}",
                    provider=self.provider,
                    details={"event": event},
                ) from exc
            except Exception as exc:
                self.close()
                raise CanonicalError(
                    ErrorKind.UNKNOWN,
                    f"Failed to convert stream event: {exc}",
                    provider=self.provider,
                    details={"event": event},
                ) from exc

            if result is None:
                continue
            if isinstance(result, CanonicalError):
                self.close()
                raise result

            self.delivered += 1
            return result

    def close(self) -> None:
        """Release the transport stream; safe to call more than once"""
        if self.closed:
            return
        self.closed = True
        try:
            self._source.close()
        finally:
            logger.debug(
                "Closed %s stream after %d fragment(s)", self.provider, self.delivered
            )

    def cancel(self, reason: Optional[str] = None) -> None:
        """Stop consumption early and release the transport stream"""
        if not self.closed:
            self.cancel_reason = reason
            logger.info(
                "Cancelling %s stream after %d fragment(s): %s",
                self.provider,
                self.delivered,
                reason or "cancelled by consumer",
            )
        self.close()

    def __enter__(self) -> "FragmentStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def collect(self) -> CanonicalResponse:
        """Drain the remaining fragments into one complete response"""
        return aggregate_fragments(list(self), kind=self.kind, model=self.model)


def aggregate_fragments(
    fragments: List[CanonicalResponse],
    *,
    kind: OperationKind,
    model: Optional[str] = None,
) -> CanonicalResponse:
    """Fold stream fragments into a single non-partial response"""
    texts: Dict[int, List[str]] = {}
    finish: Dict[int, Optional[FinishReason]] = {}
    usage: Optional[UsageStatistics] = None

    for fragment in fragments:
        model = model or fragment.model
        if fragment.usage is not None:
            # Providers report running totals, possibly split across events
            usage = fragment.usage if usage is None else _merge_usage(usage, fragment.usage)
        for item in fragment.items:
            texts.setdefault(item.index, [])
            if item.content:
                texts[item.index].append(item.content)
            if item.finish_reason is not None:
                finish[item.index] = item.finish_reason

    items = tuple(
        ResultItem(
            index=index,
            content="".join(parts),
            finish_reason=finish.get(index),
        )
        for index, parts in sorted(texts.items())
    )
    return CanonicalResponse(kind=kind, model=model, items=items, usage=usage)


def _merge_usage(first: UsageStatistics, second: UsageStatistics) -> UsageStatistics:
    prompt = max(first.prompt_tokens, second.prompt_tokens)
    completion = max(first.completion_tokens, second.completion_tokens)
    return UsageStatistics(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=max(first.total_tokens, second.total_tokens, prompt + completion),
    )
