"""httpx transport and provider error decoding tests"""

import json

import httpx
import pytest
from relayllm.core.credentials import ApiKeyHeader, BearerToken
from relayllm.core.exceptions import TransportError, TransportTimeout
from relayllm.core.transport import (
    HttpxTransport,
    ProviderError,
    ProviderRequest,
    ProviderResponse,
    decode_provider_error,
)
from relayllm.fixtures.anthropic import ANTHROPIC_OVERLOADED_ERROR
from relayllm.fixtures.openai import OPENAI_RATE_LIMIT_ERROR
from relayllm.fixtures.vertex_ai import VERTEX_AI_QUOTA_ERROR

URL = "https://llm.example/v1/chat/completions"


def _transport(handler):
    return HttpxTransport(httpx.Client(transport=httpx.MockTransport(handler)))


def _request(**kwargs):
    return ProviderRequest(method="POST", url=URL, body={"model": "m1"}, **kwargs)


class TestDecodeProviderError:
    """Test error envelope decoding"""

    def test_openai_envelope(self):
        error = decode_provider_error(429, json.dumps(OPENAI_RATE_LIMIT_ERROR))
        assert error.status_code == 429
        assert error.code == "rate_limit_exceeded"
        assert error.message == OPENAI_RATE_LIMIT_ERROR["error"]["message"]

    def test_anthropic_envelope(self):
        error = decode_provider_error(529, json.dumps(ANTHROPIC_OVERLOADED_ERROR).encode())
        assert error.code == "overloaded_error"
        assert error.body == ANTHROPIC_OVERLOADED_ERROR

    def test_google_envelope(self):
        error = decode_provider_error(429, json.dumps(VERTEX_AI_QUOTA_ERROR))
        assert error.code == "RESOURCE_EXHAUSTED"

    def test_plain_text(self):
        error = decode_provider_error(502, b"Bad Gateway")
        assert error.code is None
        assert error.message == "Bad Gateway"
        assert error.body == "Bad Gateway"

    def test_empty_body(self):
        error = decode_provider_error(503, "")
        assert error == ProviderError(status_code=503, code=None, message="", body="")


class TestHttpxTransportSend:
    """Test non-streaming calls through httpx"""

    def test_success(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json={"id": "1"})

        result = _transport(handler).send(
            _request(headers={"anthropic-version": "2023-06-01"}), BearerToken("sk"), 5
        )

        assert isinstance(result, ProviderResponse)
        assert result.body == {"id": "1"}
        sent = seen["request"]
        assert sent.headers["Authorization"] == "Bearer sk"
        assert sent.headers["anthropic-version"] == "2023-06-01"
        assert json.loads(sent.content) == {"model": "m1"}

    def test_api_key_header(self):
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            return httpx.Response(200, json={})

        _transport(handler).send(_request(), ApiKeyHeader("sk-ant"), 5)
        assert seen["headers"]["x-api-key"] == "sk-ant"
        assert "Authorization" not in seen["headers"]

    def test_provider_error_returned(self):
        transport = _transport(lambda request: httpx.Response(429, json=OPENAI_RATE_LIMIT_ERROR))
        result = transport.send(_request(), BearerToken("sk"), 5)
        assert isinstance(result, ProviderError)
        assert result.status_code == 429
        assert result.code == "rate_limit_exceeded"

    def test_non_json_success_body(self):
        transport = _transport(lambda request: httpx.Response(200, text="ok"))
        result = transport.send(_request(), None, 5)
        assert result.body == {"raw": "ok"}

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(TransportTimeout):
            _transport(handler).send(_request(), None, 5)

    def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError) as exc_info:
            _transport(handler).send(_request(), None, 5)
        assert not isinstance(exc_info.value, TransportTimeout)


class TestHttpxTransportStream:
    """Test server-sent event streams through httpx"""

    def test_sse_parsing(self):
        body = "\n".join(
            [
                "event: message_start",
                'data: {"n": 1}',
                "",
                ": keep-alive",
                "data: not json",
                'data: {"n": 2}',
                "data: [DONE]",
                'data: {"n": 3}',
                "",
            ]
        )
        transport = _transport(
            lambda request: httpx.Response(
                200, content=body.encode(), headers={"content-type": "text/event-stream"}
            )
        )

        stream = transport.open_stream(_request(stream=True), BearerToken("sk"), 5)

        assert [event["n"] for event in stream] == [1, 2]
        assert stream.closed

    def test_stream_accept_header(self):
        seen = {}

        def handler(request):
            seen["accept"] = request.headers["Accept"]
            return httpx.Response(200, content=b"")

        stream = _transport(handler).open_stream(_request(stream=True), None, 5)
        assert list(stream) == []
        assert seen["accept"] == "text/event-stream"

    def test_stream_error_status(self):
        transport = _transport(
            lambda request: httpx.Response(529, json=ANTHROPIC_OVERLOADED_ERROR)
        )
        result = transport.open_stream(_request(stream=True), ApiKeyHeader("k"), 5)
        assert isinstance(result, ProviderError)
        assert result.status_code == 529
        assert result.code == "overloaded_error"

    def test_stream_close_before_iteration(self):
        transport = _transport(lambda request: httpx.Response(200, content=b'data: {"n": 1}\n'))
        stream = transport.open_stream(_request(stream=True), None, 5)
        stream.close()
        stream.close()
        assert stream.closed
        assert list(stream) == []

    def test_stream_open_timeout(self):
        def handler(request):
            raise httpx.ConnectTimeout("connect timed out", request=request)

        with pytest.raises(TransportTimeout):
            _transport(handler).open_stream(_request(stream=True), None, 5)
