"""SSE event publisher that relays canonical stream fragments to the client."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

from fastapi.concurrency import run_in_threadpool

from relayllm.core.exceptions import CanonicalError
from relayllm.core.streaming import FragmentStream

logger = logging.getLogger(__name__)


def _safe_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, default=str)


def _sse_frame(data: Any, event: str | None = None) -> str:
    """Format a strict SSE frame with optional event name."""
    data_str = data if isinstance(data, str) else _safe_json(data)
    lines = []
    if event:
        lines.append(f"event: {event}")
    if data_str == "":
        lines.append("data:")
    else:
        for line in str(data_str).splitlines():
            lines.append(f"data: {line}")
    return "\n".join(lines) + "\n\n"


async def event_publisher(stream: FragmentStream) -> AsyncIterator[str]:
    """Yield one SSE frame per fragment, then ``[DONE]``

    Fragments are pulled in the threadpool so a blocking transport never stalls
    the event loop. A failure mid-stream is reported as an ``error`` event. The
    fragment stream is cancelled when the generator is closed or cancelled
    before the end.
    """
    completed = False
    try:
        while True:
            fragment = await run_in_threadpool(next, stream, None)
            if fragment is None:
                break
            yield _sse_frame(fragment.model_dump(mode="json", exclude_none=True))
        completed = True
        yield _sse_frame("[DONE]", event="end")
    except CanonicalError as exc:
        completed = True
        logger.warning("Stream from %s failed: %s", stream.provider, exc)
        yield _sse_frame({"error": exc.to_dict()}, event="error")
    finally:
        if not completed:
            stream.cancel("client disconnected")
        stream.close()
