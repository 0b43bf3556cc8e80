"""HTTP gateway tests"""

import asyncio
import json

from fastapi.testclient import TestClient
from gateway.app import ERROR_STATUS, create_app
from gateway.streaming import event_publisher
from relayllm import build_dispatcher
from relayllm.config import GatewayConfig, ProviderSettings
from relayllm.core.credentials import EnvCredentialSource
from relayllm.core.exceptions import ErrorKind
from relayllm.core.schema import CanonicalRequest
from relayllm.core.streaming import FragmentStream
from relayllm.core.transport import ProviderResponse
from relayllm.fixtures.openai import (
    OPENAI_FINE_TUNE_SUCCEEDED,
    OPENAI_HELLO_RESPONSE,
    OPENAI_RATE_LIMIT_ERROR,
    OPENAI_STREAM_CHUNKS,
)
from relayllm.fixtures.transport import StubStream, StubTransport, provider_error
from relayllm.fixtures.vertex_ai import VERTEX_AI_TUNING_JOB_SUCCEEDED

ENVIRON = {
    "OPENAI_API_KEY": "sk-openai",
    "ANTHROPIC_API_KEY": "sk-ant",
    "VERTEX_AI_ACCESS_TOKEN": "ya29.token",
}

HELLO = {"kind": "chat", "model": "m1", "messages": [{"role": "user", "content": "hi"}]}


def _client(transport, environ=None, config=None):
    dispatcher = build_dispatcher(
        config=config,
        transport=transport,
        credentials=EnvCredentialSource(environ=ENVIRON if environ is None else environ),
    )
    return TestClient(create_app(dispatcher=dispatcher))


def _sse_events(text):
    events = []
    for frame in text.strip().split("\n\n"):
        event = {"event": None, "data": []}
        for line in frame.splitlines():
            if line.startswith("event: "):
                event["event"] = line[len("event: "):]
            elif line.startswith("data: "):
                event["data"].append(line[len("data: "):])
        events.append((event["event"], "\n".join(event["data"])))
    return events


class TestProviders:
    """Test the provider listing endpoint"""

    def test_list_providers(self):
        client = _client(StubTransport.returning({}))
        response = client.get("/v1/providers")

        assert response.status_code == 200
        data = {entry["id"]: entry for entry in response.json()["data"]}
        assert sorted(data) == ["anthropic", "openai", "vertex_ai"]
        assert "fine_tune" in data["openai"]["operations"]
        assert data["anthropic"]["operations"] == ["chat"]
        assert data["anthropic"]["credential_shape"] == "api_key_header"
        assert data["openai"]["streaming"] == ["chat", "completion"]


class TestDispatchEndpoint:
    """Test request dispatch over HTTP"""

    def test_chat(self):
        transport = StubTransport.returning(OPENAI_HELLO_RESPONSE)
        response = _client(transport).post("/v1/providers/openai/dispatch", json=HELLO)

        assert response.status_code == 200
        body = response.json()
        assert body["kind"] == "chat"
        assert body["items"][0]["content"] == "hello"
        assert body["usage"]["total_tokens"] == 5
        assert "raw" not in body
        assert transport.last_call.credentials.token == "sk-openai"

    def test_stream(self):
        source = StubStream(OPENAI_STREAM_CHUNKS)
        transport = StubTransport(source)
        response = _client(transport).post(
            "/v1/providers/openai/dispatch", json={**HELLO, "stream": True}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _sse_events(response.text)
        assert events[-1] == ("end", "[DONE]")
        fragments = [json.loads(data) for name, data in events[:-1]]
        text = "".join(
            item.get("content", "") for fragment in fragments for item in fragment["items"]
        )
        assert text == "Hello"
        assert all(fragment["partial"] for fragment in fragments)
        assert source.closed

    def test_stream_error_event(self):
        events = [OPENAI_STREAM_CHUNKS[1], {"error": {"message": "slow down", "code": "rate_limit_exceeded"}}]
        transport = StubTransport(StubStream(events))
        response = _client(transport).post(
            "/v1/providers/openai/dispatch", json={**HELLO, "stream": True}
        )

        name, data = _sse_events(response.text)[-1]
        assert name == "error"
        assert json.loads(data)["error"]["kind"] == "rate_limited"

    def test_invalid_body(self):
        transport = StubTransport.returning(OPENAI_HELLO_RESPONSE)
        response = _client(transport).post(
            "/v1/providers/openai/dispatch", json={"kind": "chat", "model": "m1"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["kind"] == "invalid_request"
        assert transport.calls == []

    def test_missing_credentials(self):
        transport = StubTransport.returning(OPENAI_HELLO_RESPONSE)
        response = _client(transport, environ={}).post("/v1/providers/openai/dispatch", json=HELLO)
        assert response.status_code == 401
        assert "OPENAI_API_KEY" in response.json()["error"]["message"]

    def test_unsupported_capability(self):
        transport = StubTransport.returning({})
        request = {"kind": "embedding", "model": "e", "messages": [{"content": "x"}]}
        response = _client(transport).post("/v1/providers/anthropic/dispatch", json=request)
        assert response.status_code == 422
        assert response.json()["error"]["kind"] == "unsupported_capability"

    def test_unknown_provider(self):
        response = _client(StubTransport.returning({})).post(
            "/v1/providers/nope/dispatch", json=HELLO
        )
        assert response.status_code == 503

    def test_rate_limited(self):
        transport = StubTransport(provider_error(429, OPENAI_RATE_LIMIT_ERROR))
        response = _client(transport).post("/v1/providers/openai/dispatch", json=HELLO)

        assert response.status_code == 429
        assert response.headers["retry-after"] == "1"
        assert response.json()["error"]["provider_status"] == 429

    def test_every_error_kind_has_a_status(self):
        assert set(ERROR_STATUS) == set(ErrorKind)


class TestJobsEndpoint:
    """Test fine-tuning job polling over HTTP"""

    def test_poll_openai_job(self):
        transport = StubTransport.returning(OPENAI_FINE_TUNE_SUCCEEDED)
        response = _client(transport).get("/v1/providers/openai/jobs/ftjob-abc123")

        assert response.status_code == 200
        assert response.json()["job"]["status"] == "succeeded"
        assert transport.last_call.request.method == "GET"

    def test_poll_vertex_resource_name(self):
        config = GatewayConfig(
            providers={"vertex_ai": ProviderSettings(project="demo-project", location="us-central1")}
        )
        transport = StubTransport(
            ProviderResponse(status_code=200, body=VERTEX_AI_TUNING_JOB_SUCCEEDED)
        )
        job_name = VERTEX_AI_TUNING_JOB_SUCCEEDED["name"]
        response = _client(transport, config=config).get(f"/v1/providers/vertex_ai/jobs/{job_name}")

        assert response.status_code == 200
        assert response.json()["job"]["job_id"] == job_name
        assert transport.last_call.request.url.endswith(job_name)

    def test_poll_unsupported(self):
        response = _client(StubTransport.returning({})).get("/v1/providers/anthropic/jobs/job-1")
        assert response.status_code == 422


class TestStreamRelease:
    """Test that abandoned SSE streams release the provider stream"""

    def _dispatcher(self, source):
        return build_dispatcher(
            transport=StubTransport(source), credentials=EnvCredentialSource(environ=ENVIRON)
        )

    def test_publisher_closed_after_first_frame(self):
        """Test that closing the publisher early cancels the fragment stream"""
        source = StubStream(OPENAI_STREAM_CHUNKS)
        stream = self._dispatcher(source).dispatch(
            "openai", CanonicalRequest(**{**HELLO, "stream": True})
        )

        async def read_one_frame():
            publisher = event_publisher(stream)
            frame = await publisher.__anext__()
            await publisher.aclose()
            return frame

        frame = asyncio.run(read_one_frame())

        assert frame.startswith("data: ")
        assert source.closed
        assert stream.cancel_reason == "client disconnected"
        assert source.yielded < len(OPENAI_STREAM_CHUNKS)

    def test_response_cleanup_cancels_unread_stream(self):
        """Test the cleanup task that runs when the client goes away"""
        source = StubStream(OPENAI_STREAM_CHUNKS)
        app = create_app(dispatcher=self._dispatcher(source))
        route = next(r for r in app.routes if getattr(r, "path", "") == "/v1/providers/{provider}/dispatch")

        response = route.endpoint("openai", {**HELLO, "stream": True})
        asyncio.run(response.background())

        assert source.closed
        assert source.yielded == 0

    def test_cleanup_after_full_stream_is_harmless(self):
        source = StubStream(OPENAI_STREAM_CHUNKS)
        stream = self._dispatcher(source).dispatch(
            "openai", CanonicalRequest(**{**HELLO, "stream": True})
        )
        assert isinstance(stream, FragmentStream)
        assert stream.collect().text == "Hello"
        stream.cancel("client disconnected")
        assert stream.cancel_reason is None
