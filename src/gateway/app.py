"""FastAPI surface exposing the relayllm dispatcher over HTTP.

Canonical requests are posted as JSON; streaming requests are answered with
server-sent events. Canonical errors map onto HTTP statuses.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from relayllm.config import GatewayConfig, load_config
from relayllm.core.exceptions import CanonicalError, ErrorKind, invalid_request
from relayllm.core.schema import CanonicalRequest
from relayllm.core.streaming import FragmentStream
from relayllm.dispatcher import Dispatcher, build_dispatcher
from relayllm.log import configure_logging

from .streaming import event_publisher

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.AUTH_ERROR: 401,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.UNSUPPORTED_CAPABILITY: 422,
    ErrorKind.PROVIDER_UNAVAILABLE: 503,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.UNKNOWN: 502,
}


def _error_response(exc: CanonicalError) -> JSONResponse:
    status = ERROR_STATUS[exc.kind]
    headers = {"Retry-After": "1"} if exc.kind is ErrorKind.RATE_LIMITED else None
    return JSONResponse(status_code=status, content={"error": exc.to_dict()}, headers=headers)


def create_app(
    dispatcher: Dispatcher | None = None,
    config: GatewayConfig | None = None,
) -> FastAPI:
    """Build the FastAPI app around ``dispatcher``

    Without a dispatcher one is built from ``config`` (default: ``load_config()``).
    """
    if dispatcher is None:
        config = config or load_config()
        configure_logging(config.log_level)
        dispatcher = build_dispatcher(config)

    app = FastAPI(title="RelayLLM Gateway")
    app.state.dispatcher = dispatcher

    @app.exception_handler(CanonicalError)
    async def canonical_error_handler(request: Request, exc: CanonicalError) -> JSONResponse:
        logger.info("%s %s -> %s", request.method, request.url.path, exc)
        return _error_response(exc)

    @app.get("/v1/providers")
    def list_providers() -> dict[str, Any]:
        """List registered providers and their declared capabilities."""
        registry = dispatcher.registry
        data = []
        for provider_id in registry.list_providers():
            descriptor = registry.get(provider_id)
            data.append(
                {
                    "id": provider_id,
                    "operations": sorted(op.value for op in descriptor.operations),
                    "streaming": sorted(op.value for op in descriptor.streaming),
                    "credential_shape": descriptor.credential_shape.value,
                }
            )
        return {"object": "list", "data": data}

    @app.post("/v1/providers/{provider}/dispatch")
    def dispatch(provider: str, body: dict[str, Any]) -> Any:
        """Execute a canonical request; streams SSE when ``stream`` is true."""
        request = CanonicalRequest(**body)
        result = dispatcher.dispatch(provider, request)
        if isinstance(result, FragmentStream):
            # Runs after the response ends, including on client disconnect
            cleanup = BackgroundTasks()
            cleanup.add_task(result.cancel, "client disconnected")
            return StreamingResponse(
                event_publisher(result),
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache"},
                background=cleanup,
            )
        return result.model_dump(mode="json", exclude_none=True)

    @app.get("/v1/providers/{provider}/jobs/{job_id:path}")
    def poll_job(provider: str, job_id: str) -> dict[str, Any]:
        """Return the current status of a fine-tuning job."""
        if not job_id.strip():
            raise invalid_request("job_id must not be empty")
        response = dispatcher.poll(provider, job_id)
        return response.model_dump(mode="json", exclude_none=True)

    return app
