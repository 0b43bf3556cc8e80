"""Dispatcher tests"""

import pytest
from relayllm import build_dispatcher
from relayllm.adapters.openai import OpenAIHandler
from relayllm.config import GatewayConfig, ProviderSettings
from relayllm.core.credentials import BearerToken, CredentialShape, EnvCredentialSource
from relayllm.core.exceptions import CanonicalError, ErrorKind, RegistrySealedError
from relayllm.core.schema import (
    CanonicalRequest,
    FineTuneJobSpec,
    JobStatus,
    Message,
    OperationKind,
    Role,
)
from relayllm.core.streaming import FragmentStream
from relayllm.core.transport import ProviderResponse
from relayllm.fixtures.openai import (
    OPENAI_FINE_TUNE_CREATED,
    OPENAI_FINE_TUNE_SUCCEEDED,
    OPENAI_HELLO_RESPONSE,
    OPENAI_INVALID_KEY_ERROR,
    OPENAI_STREAM_CHUNKS,
)
from relayllm.fixtures.transport import StubStream, StubTransport, provider_error
from relayllm.utils.capability_registry import ProviderDescriptor

X_DESCRIPTOR = ProviderDescriptor(
    provider_id="x",
    operations=frozenset({OperationKind.chat}),
    streaming=frozenset({OperationKind.chat}),
    credential_shape=CredentialShape.bearer_token,
    endpoint_template="{base_url}/{path}",
    default_base_url="https://llm.x.example/v1",
)


def _hi(**kwargs):
    return CanonicalRequest(
        kind="chat", model="m1", messages=[Message(role="user", content="hi")], **kwargs
    )


def _dispatcher(transport, environ=None, config=None):
    return build_dispatcher(
        config=config,
        transport=transport,
        credentials=EnvCredentialSource(environ=environ or {"X_API_KEY": "x-key"}),
        extra=[(X_DESCRIPTOR, OpenAIHandler)],
    )


class TestDispatch:
    """Test routing requests to provider handlers"""

    def test_hello_walkthrough(self):
        """Test dispatching a chat request to an OpenAI-compatible provider"""
        transport = StubTransport.returning(OPENAI_HELLO_RESPONSE)
        response = _dispatcher(transport).dispatch("x", _hi())

        assert len(response.items) == 1
        assert response.items[0].role is Role.assistant
        assert response.items[0].content == "hello"
        assert response.usage.total_tokens == 5
        assert transport.last_call.request.url == "https://llm.x.example/v1/chat/completions"

    def test_credentials_from_source(self):
        transport = StubTransport.returning(OPENAI_HELLO_RESPONSE)
        _dispatcher(transport).dispatch("x", _hi())
        assert transport.last_call.credentials == BearerToken("x-key")

    def test_explicit_credentials_win(self):
        transport = StubTransport.returning(OPENAI_HELLO_RESPONSE)
        credentials = BearerToken("explicit")
        _dispatcher(transport).dispatch("x", _hi(), credentials)
        assert transport.last_call.credentials is credentials

    def test_missing_credentials(self):
        transport = StubTransport.returning(OPENAI_HELLO_RESPONSE)
        with pytest.raises(CanonicalError) as exc_info:
            _dispatcher(transport, environ={"UNRELATED": "1"}).dispatch("openai", _hi())
        assert exc_info.value.kind is ErrorKind.AUTH_ERROR
        assert "OPENAI_API_KEY" in exc_info.value.message
        assert transport.calls == []

    def test_unknown_provider(self):
        transport = StubTransport.returning(OPENAI_HELLO_RESPONSE)
        with pytest.raises(CanonicalError) as exc_info:
            _dispatcher(transport).dispatch("nope", _hi())
        assert exc_info.value.kind is ErrorKind.PROVIDER_UNAVAILABLE

    def test_capability_checked_before_credentials(self):
        transport = StubTransport.returning(OPENAI_HELLO_RESPONSE)
        request = CanonicalRequest(kind="embedding", model="e", messages=[Message(content="x")])
        with pytest.raises(CanonicalError) as exc_info:
            _dispatcher(transport, environ={"UNRELATED": "1"}).dispatch("anthropic", request)
        assert exc_info.value.kind is ErrorKind.UNSUPPORTED_CAPABILITY

    def test_provider_errors_pass_through(self):
        transport = StubTransport(provider_error(401, OPENAI_INVALID_KEY_ERROR))
        with pytest.raises(CanonicalError) as exc_info:
            _dispatcher(transport).dispatch("x", _hi())
        assert exc_info.value.kind is ErrorKind.AUTH_ERROR
        assert exc_info.value.provider == "x"
        assert exc_info.value.provider_status == 401

    def test_streaming_dispatch(self):
        source = StubStream(OPENAI_STREAM_CHUNKS)
        transport = StubTransport(source)
        stream = _dispatcher(transport).dispatch("x", _hi(stream=True))

        assert isinstance(stream, FragmentStream)
        assert stream.collect().text == "Hello"
        assert source.closed

    def test_registry_is_sealed(self):
        dispatcher = _dispatcher(StubTransport.returning({}))
        assert dispatcher.registry.sealed
        with pytest.raises(RegistrySealedError):
            dispatcher.registry.register(X_DESCRIPTOR)
        assert dispatcher.list_providers() == ["anthropic", "openai", "vertex_ai", "x"]

    def test_credential_env_from_config(self, monkeypatch):
        monkeypatch.setenv("TEAM_OPENAI_KEY", "sk-team")
        config = GatewayConfig(providers={"openai": ProviderSettings(credential_env="TEAM_OPENAI_KEY")})
        transport = StubTransport.returning(OPENAI_HELLO_RESPONSE)
        build_dispatcher(config=config, transport=transport).dispatch(
            "openai", CanonicalRequest(kind="chat", model="gpt-4o-mini", messages=[Message(content="hi")])
        )
        assert transport.last_call.credentials == BearerToken("sk-team")


class TestPoll:
    """Test fine-tuning through the dispatcher"""

    def test_submit_then_poll(self):
        transport = StubTransport(
            ProviderResponse(status_code=200, body=OPENAI_FINE_TUNE_CREATED),
            ProviderResponse(status_code=200, body=OPENAI_FINE_TUNE_SUCCEEDED),
        )
        dispatcher = _dispatcher(transport, environ={"OPENAI_API_KEY": "sk"})
        spec = FineTuneJobSpec(dataset="file-abc123", base_model="gpt-4o-mini")

        submitted = dispatcher.dispatch("openai", CanonicalRequest.for_fine_tune(spec))
        assert submitted.job.status is JobStatus.pending

        first = dispatcher.poll("openai", submitted.job.job_id)
        second = dispatcher.poll("openai", submitted.job.job_id)
        assert first.job.status is second.job.status is JobStatus.succeeded
        assert transport.last_call.request.url.endswith("/fine_tuning/jobs/ftjob-abc123")

    def test_poll_unknown_provider(self):
        with pytest.raises(CanonicalError) as exc_info:
            _dispatcher(StubTransport.returning({})).poll("nope", "job")
        assert exc_info.value.kind is ErrorKind.PROVIDER_UNAVAILABLE
