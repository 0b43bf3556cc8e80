# Provider-specific generation parameter alias tables for relayllm
# Each table maps a canonical parameter name to the provider's field path.
# Dotted paths address nested objects (e.g. Vertex AI generationConfig).
# A canonical parameter absent from a table has no provider equivalent.

from typing import Any, Dict, Mapping, Optional

from ..types.provider import Provider


class ProviderAliases:
    """Generation parameter alias tables per provider and operation kind"""

    # OpenAI chat/completions
    OPENAI = {
        "temperature": "temperature",
        "max_tokens": "max_tokens",
        "top_p": "top_p",
        "stop_sequences": "stop",
        "seed": "seed",
        "presence_penalty": "presence_penalty",
        "frequency_penalty": "frequency_penalty",
        "n": "n",
    }

    OPENAI_EMBEDDING = {
        "dimensions": "dimensions",
    }

    # Fine-tuning jobs take hyperparameters, not generation parameters
    OPENAI_FINE_TUNE: Dict[str, str] = {}

    # Anthropic messages
    ANTHROPIC = {
        "temperature": "temperature",
        "max_tokens": "max_tokens",
        "top_p": "top_p",
        "top_k": "top_k",
        "stop_sequences": "stop_sequences",
    }

    # Vertex AI generateContent
    VERTEX_AI = {
        "temperature": "generationConfig.temperature",
        "max_tokens": "generationConfig.maxOutputTokens",
        "top_p": "generationConfig.topP",
        "top_k": "generationConfig.topK",
        "stop_sequences": "generationConfig.stopSequences",
        "seed": "generationConfig.seed",
        "presence_penalty": "generationConfig.presencePenalty",
        "frequency_penalty": "generationConfig.frequencyPenalty",
        "n": "generationConfig.candidateCount",
    }

    # Vertex AI text embedding models (publisher :predict)
    VERTEX_AI_EMBEDDING = {
        "dimensions": "parameters.outputDimensionality",
    }

    # Vertex AI deployed endpoints (:predict)
    VERTEX_AI_ONLINE_PREDICT = {
        "temperature": "parameters.temperature",
        "max_tokens": "parameters.maxOutputTokens",
        "top_p": "parameters.topP",
        "top_k": "parameters.topK",
    }

    VERTEX_AI_FINE_TUNE: Dict[str, str] = {}

    @classmethod
    def get_provider_aliases(cls, provider: str, kind: Optional[str] = None) -> Dict[str, str]:
        """Get the alias table for a provider, preferring a kind-specific one"""
        provider_key = provider.upper().replace("-", "_")
        if kind:
            aliases = getattr(cls, f"{provider_key}_{kind.upper()}", None)
            if aliases is not None:
                return aliases

        aliases = getattr(cls, provider_key, None)
        if aliases is None:
            raise ValueError(
                f"Unsupported provider: {provider}. "
                f"Supported providers: {cls.list_supported_providers()}"
            )
        return aliases

    @classmethod
    def list_supported_providers(cls) -> list:
        """List provider names that have a base alias table"""
        return sorted(provider.value for provider in Provider if hasattr(cls, provider.name))

    @classmethod
    def get_reverse_mapping(cls, provider: str, kind: Optional[str] = None) -> Dict[str, str]:
        """Get reverse mapping (provider path -> canonical name)"""
        aliases = cls.get_provider_aliases(provider, kind)
        return {v: k for k, v in aliases.items()}


def set_path(target: Dict[str, Any], path: str, value: Any) -> None:
    """Assign ``value`` at a dotted ``path``, creating nested dicts as needed"""
    *parents, leaf = path.split(".")
    node = target
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value


def get_path(source: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Read the value at a dotted ``path``; missing segments yield ``default``"""
    node: Any = source
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return default
        node = node[part]
    return node
