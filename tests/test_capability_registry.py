"""Capability registry tests"""

import pytest
from relayllm.core.credentials import CredentialShape
from relayllm.core.exceptions import (
    CanonicalError,
    DuplicateProviderError,
    ErrorKind,
    RegistrySealedError,
)
from relayllm.core.schema import HyperparameterRange, OperationKind
from relayllm.types import Provider
from relayllm.utils.capability_registry import (
    BUILTIN_DESCRIPTORS,
    CapabilityRegistry,
    ProviderDescriptor,
    builtin_registry,
)


def _descriptor(provider_id="x", operations=(OperationKind.chat,), **kwargs):
    return ProviderDescriptor(
        provider_id=provider_id,
        operations=frozenset(operations),
        credential_shape=CredentialShape.bearer_token,
        endpoint_template="{base_url}/{path}",
        default_base_url="https://x.example/v1",
        **kwargs,
    )


class TestResolve:
    """Test capability resolution"""

    def setup_method(self):
        self.registry = builtin_registry()
        self.registry.seal()

    def test_every_declared_operation_resolves(self):
        """Test that resolve succeeds for every declared (provider, kind) pair"""
        for descriptor in BUILTIN_DESCRIPTORS:
            for operation in descriptor.operations:
                resolved = self.registry.resolve(descriptor.provider_id, operation)
                assert resolved is descriptor

    def test_undeclared_operations_unsupported(self):
        """Test that undeclared kinds fail with unsupported_capability"""
        for descriptor in BUILTIN_DESCRIPTORS:
            for operation in set(OperationKind) - descriptor.operations:
                with pytest.raises(CanonicalError) as exc_info:
                    self.registry.resolve(descriptor.provider_id, operation)
                assert exc_info.value.kind is ErrorKind.UNSUPPORTED_CAPABILITY

    def test_anthropic_has_no_embeddings(self):
        with pytest.raises(CanonicalError) as exc_info:
            self.registry.resolve("anthropic", "embedding")
        assert exc_info.value.kind is ErrorKind.UNSUPPORTED_CAPABILITY
        assert exc_info.value.provider == "anthropic"

    def test_streaming_capability(self):
        """Test that streaming is checked separately from the operation"""
        self.registry.resolve("openai", "completion", stream=True)
        with pytest.raises(CanonicalError) as exc_info:
            self.registry.resolve("openai", "embedding", stream=True)
        assert exc_info.value.kind is ErrorKind.UNSUPPORTED_CAPABILITY

    def test_unknown_provider(self):
        with pytest.raises(CanonicalError) as exc_info:
            self.registry.resolve("nope", "chat")
        assert exc_info.value.kind is ErrorKind.PROVIDER_UNAVAILABLE

    def test_lookup_is_case_insensitive(self):
        assert self.registry.get("OpenAI").provider_id == "openai"
        assert self.registry.get(Provider.VERTEX_AI).provider_id == "vertex_ai"

    def test_list_providers(self):
        assert self.registry.list_providers() == ["anthropic", "openai", "vertex_ai"]
        assert self.registry.is_supported("anthropic")
        assert "vertex_ai" in self.registry
        assert len(self.registry) == 3


class TestRegistration:
    """Test registration rules"""

    def test_duplicate_identifier_rejected(self):
        registry = CapabilityRegistry([_descriptor("x")])
        with pytest.raises(DuplicateProviderError):
            registry.register(_descriptor("X"))

    def test_sealed_registry_rejects_registration(self):
        registry = CapabilityRegistry()
        registry.seal()
        assert registry.sealed
        with pytest.raises(RegistrySealedError):
            registry.register(_descriptor("x"))

    def test_register_requires_descriptor(self):
        with pytest.raises(TypeError):
            CapabilityRegistry().register({"provider_id": "x"})

    def test_builtin_registry_extra(self):
        registry = builtin_registry([_descriptor("x")])
        assert registry.resolve("x", "chat").provider_id == "x"
        assert not registry.sealed


class TestDescriptor:
    """Test descriptor invariants"""

    def test_streaming_must_be_declared(self):
        with pytest.raises(ValueError):
            _descriptor(operations=(OperationKind.chat,), streaming=frozenset({"completion"}))

    def test_only_generation_kinds_stream(self):
        with pytest.raises(ValueError):
            _descriptor(
                operations=(OperationKind.embedding,),
                streaming=frozenset({OperationKind.embedding}),
            )

    def test_ranges_require_fine_tune(self):
        with pytest.raises(ValueError):
            _descriptor(
                hyperparameter_ranges={"n_epochs": HyperparameterRange(minimum=1, maximum=3)}
            )

    def test_supports(self):
        descriptor = _descriptor(
            operations=(OperationKind.chat, OperationKind.completion),
            streaming=frozenset({OperationKind.chat}),
        )
        assert descriptor.supports("chat")
        assert descriptor.supports("chat", stream=True)
        assert not descriptor.supports("completion", stream=True)
        assert not descriptor.supports("embedding")
