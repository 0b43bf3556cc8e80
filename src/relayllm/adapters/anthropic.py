"""Anthropic transformer and handler

Anthropic's Messages API differs from OpenAI's chat format in a few ways:
1. System messages go in a separate top-level ``system`` parameter
2. ``max_tokens`` is mandatory
3. The API version is selected with the ``anthropic-version`` header
4. Streams are typed events (``message_start``, ``content_block_delta``, ...)
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..core.base_handler import BaseHandler
from ..core.base_transformer import HTTP_STATUS_CODES, BaseTransformer, CanonicalResult
from ..core.exceptions import ErrorKind, unsupported_capability
from ..core.schema import (
    CanonicalRequest,
    CanonicalResponse,
    FinishReason,
    Message,
    OperationKind,
    ResultItem,
    Role,
    UsageStatistics,
)
from ..core.transport import ProviderError, ProviderRequest

DEFAULT_API_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 1024


class AnthropicTransformer(BaseTransformer):
    """Transformer for the Anthropic Messages API"""

    alias_table = "anthropic"

    # https://docs.anthropic.com/en/api/errors
    error_codes = {
        "authentication_error": ErrorKind.AUTH_ERROR,
        "permission_error": ErrorKind.AUTH_ERROR,
        "rate_limit_error": ErrorKind.RATE_LIMITED,
        "invalid_request_error": ErrorKind.INVALID_REQUEST,
        "not_found_error": ErrorKind.INVALID_REQUEST,
        "request_too_large": ErrorKind.INVALID_REQUEST,
        "api_error": ErrorKind.PROVIDER_UNAVAILABLE,
        "overloaded_error": ErrorKind.PROVIDER_UNAVAILABLE,
    }

    # 529 is Anthropic's "overloaded" status
    status_codes = {**HTTP_STATUS_CODES, 529: ErrorKind.PROVIDER_UNAVAILABLE}

    finish_reasons = {
        "end_turn": FinishReason.stop,
        "stop_sequence": FinishReason.stop,
        "max_tokens": FinishReason.length,
        "tool_use": FinishReason.tool_calls,
        "refusal": FinishReason.content_filter,
    }

    @property
    def api_version(self) -> str:
        return self.settings.api_version or DEFAULT_API_VERSION

    def to_provider(self, request: CanonicalRequest) -> ProviderRequest:
        """Convert a canonical chat request to an Anthropic Messages request"""
        if request.kind is not OperationKind.chat:
            raise unsupported_capability(self.provider_name, request.kind.value)
        self.require_text(request)

        system_parts: List[str] = []
        messages: List[Dict[str, Any]] = []
        for message in request.messages:
            # Extract system messages
            if message.role is Role.system:
                system_parts.append(message.text)
                continue
            messages.append({"role": message.role.value, "content": message.content})

        body: Dict[str, Any] = {"model": request.model, "messages": messages}
        if system_parts:
            body["system"] = "\n\n".join(system_parts)

        body.update(self.map_parameters(request.parameters, request.kind))
        # Anthropic requires max_tokens
        body.setdefault("max_tokens", DEFAULT_MAX_TOKENS)

        if request.stream:
            body["stream"] = True

        return ProviderRequest(
            method="POST",
            url=self.endpoint("messages"),
            body=body,
            headers={"anthropic-version": self.api_version},
            stream=request.stream,
        )

    def to_canonical_request(
        self, kind: OperationKind, body: Mapping[str, Any]
    ) -> CanonicalRequest:
        """Parse an Anthropic Messages body into a canonical request"""
        kind = OperationKind(kind)
        if kind is not OperationKind.chat:
            raise unsupported_capability(self.provider_name, kind.value)

        messages: List[Message] = []
        system = body.get("system")
        if isinstance(system, list):
            # System can be a list of content blocks
            system = self._text_from_blocks(system)
        if system:
            messages.append(Message(role=Role.system, content=system))

        for msg in body.get("messages", []):
            content = msg.get("content", "")
            if isinstance(content, list):
                content = self._text_from_blocks(content)
            messages.append(Message(role=msg.get("role", "user"), content=content))

        return CanonicalRequest(
            kind=kind,
            model=body.get("model", ""),
            messages=tuple(messages),
            parameters=self.parameters_from_body(body, kind),
            stream=bool(body.get("stream", False)),
        )

    def round_trip_body(self, request: CanonicalRequest) -> Dict[str, Any]:
        body = super().round_trip_body(request)
        # The default max_tokens is not a caller parameter
        if request.parameters.max_tokens is None:
            body.pop("max_tokens", None)
        return body

    def _text_from_blocks(self, blocks: List[Any]) -> str:
        return "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )

    def parse_response(self, kind: OperationKind, body: Any) -> CanonicalResponse:
        """Convert an Anthropic message into a canonical response"""
        if body.get("type") == "error":
            error = body.get("error") or {}
            raise self.classify_error(
                ProviderError(code=error.get("type"), message=error.get("message", ""), body=body)
            )

        content = self._text_from_blocks(body["content"])
        item = ResultItem(
            index=0,
            role=body.get("role") or "assistant",
            content=content,
            finish_reason=self.map_finish_reason(body.get("stop_reason")),
        )
        return CanonicalResponse(
            kind=kind,
            model=body.get("model"),
            items=(item,),
            usage=self._usage(body.get("usage")),
            raw=body,
        )

    def _usage(self, usage: Optional[Mapping[str, Any]]) -> Optional[UsageStatistics]:
        if not usage:
            return None
        return UsageStatistics(
            prompt_tokens=usage.get("input_tokens") or 0,
            completion_tokens=usage.get("output_tokens") or 0,
        )

    def from_stream_event(
        self, kind: OperationKind, event: Mapping[str, Any]
    ) -> Optional[CanonicalResult]:
        """Convert one Anthropic stream event

        ``message_start`` carries the prompt token count, ``content_block_delta``
        the text, and ``message_delta`` the stop reason and final output count.
        Ping and block start/stop events produce nothing.
        """
        event_type = event.get("type")

        if event_type == "error":
            error = event.get("error") or {}
            return self.classify_error(
                ProviderError(code=error.get("type"), message=error.get("message", ""), body=event)
            )

        if event_type == "message_start":
            message = event.get("message") or {}
            usage = self._usage(message.get("usage"))
            if usage is None:
                return None
            return CanonicalResponse(
                kind=kind, model=message.get("model"), usage=usage, partial=True, raw=event
            )

        if event_type == "content_block_delta":
            delta = event.get("delta") or {}
            if delta.get("type") != "text_delta":
                return None
            return CanonicalResponse(
                kind=kind,
                items=(ResultItem(index=0, content=delta.get("text", "")),),
                partial=True,
                raw=event,
            )

        if event_type == "message_delta":
            delta = event.get("delta") or {}
            usage = event.get("usage") or {}
            return CanonicalResponse(
                kind=kind,
                items=(
                    ResultItem(
                        index=0, finish_reason=self.map_finish_reason(delta.get("stop_reason"))
                    ),
                ),
                usage=self._usage(usage) if usage else None,
                partial=True,
                raw=event,
            )

        return None


class AnthropicHandler(BaseHandler):
    """Handler for the Anthropic Messages API"""

    transformer_class = AnthropicTransformer
