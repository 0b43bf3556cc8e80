"""OpenAI transformer and handler

OpenAI's chat completion format is the de facto standard many other providers
copy, so this transformer also serves OpenAI-compatible providers registered
under their own descriptor.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..core.base_handler import BaseHandler
from ..core.base_transformer import BaseTransformer, CanonicalResult
from ..core.exceptions import ErrorKind, invalid_request, unsupported_capability
from ..core.schema import (
    CanonicalRequest,
    CanonicalResponse,
    FineTuneJob,
    FineTuneJobSpec,
    FinishReason,
    JobStatus,
    Message,
    OperationKind,
    ResultItem,
    UsageStatistics,
)
from ..core.transport import ProviderError, ProviderRequest

_PATHS = {
    OperationKind.chat: "chat/completions",
    OperationKind.completion: "completions",
    OperationKind.embedding: "embeddings",
    OperationKind.fine_tune: "fine_tuning/jobs",
}


class OpenAITransformer(BaseTransformer):
    """Transformer for the OpenAI REST API

    Error codes follow https://platform.openai.com/docs/guides/error-codes; the
    ``type`` field is used when ``code`` is null.
    """

    alias_table = "openai"

    error_codes = {
        "invalid_api_key": ErrorKind.AUTH_ERROR,
        "authentication_error": ErrorKind.AUTH_ERROR,
        "permission_error": ErrorKind.AUTH_ERROR,
        "unsupported_country_region_territory": ErrorKind.AUTH_ERROR,
        "rate_limit_exceeded": ErrorKind.RATE_LIMITED,
        "insufficient_quota": ErrorKind.RATE_LIMITED,
        "invalid_request_error": ErrorKind.INVALID_REQUEST,
        "model_not_found": ErrorKind.INVALID_REQUEST,
        "context_length_exceeded": ErrorKind.INVALID_REQUEST,
        "invalid_value": ErrorKind.INVALID_REQUEST,
        "server_error": ErrorKind.PROVIDER_UNAVAILABLE,
        "engine_overloaded": ErrorKind.PROVIDER_UNAVAILABLE,
        "service_unavailable": ErrorKind.PROVIDER_UNAVAILABLE,
        "timeout": ErrorKind.TIMEOUT,
    }

    finish_reasons = {
        "stop": FinishReason.stop,
        "length": FinishReason.length,
        "content_filter": FinishReason.content_filter,
        "tool_calls": FinishReason.tool_calls,
        "function_call": FinishReason.tool_calls,
    }

    job_states = {
        "validating_files": JobStatus.pending,
        "queued": JobStatus.pending,
        "running": JobStatus.running,
        "succeeded": JobStatus.succeeded,
        "failed": JobStatus.failed,
        "cancelled": JobStatus.cancelled,
    }

    # Outbound ------------------------------------------------------------

    def to_provider(self, request: CanonicalRequest) -> ProviderRequest:
        """Convert a canonical request to an OpenAI request"""
        kind = request.kind
        if kind not in _PATHS:
            raise unsupported_capability(self.provider_name, kind.value)

        body: Dict[str, Any] = {"model": request.model}

        if kind is OperationKind.chat:
            self.require_text(request)
            body["messages"] = [self._from_canonical_message(m) for m in request.messages]
        elif kind is OperationKind.completion:
            prompts = self.require_text(request)
            body["prompt"] = prompts[0] if len(prompts) == 1 else prompts
        elif kind is OperationKind.embedding:
            body["input"] = self.require_text(request)
        else:
            body.update(self._fine_tune_body(request.fine_tune))

        body.update(self.map_parameters(request.parameters, kind))

        if request.stream:
            body["stream"] = True
            body["stream_options"] = {"include_usage": True}

        return ProviderRequest(
            method="POST",
            url=self.endpoint(_PATHS[kind]),
            body=body,
            stream=request.stream,
        )

    def to_poll_request(self, job_id: str) -> ProviderRequest:
        return ProviderRequest(method="GET", url=self.endpoint(f"fine_tuning/jobs/{job_id}"))

    def _from_canonical_message(self, message: Message) -> Dict[str, Any]:
        result: Dict[str, Any] = {"role": message.role.value, "content": message.content}
        if message.name:
            result["name"] = message.name
        return result

    def _fine_tune_body(self, spec: Optional[FineTuneJobSpec]) -> Dict[str, Any]:
        if spec is None:
            raise invalid_request("fine_tune requests require a job spec")
        body: Dict[str, Any] = {"training_file": spec.dataset}
        if spec.validation_dataset:
            body["validation_file"] = spec.validation_dataset
        if spec.suffix:
            body["suffix"] = spec.suffix
        if spec.hyperparameters:
            body["hyperparameters"] = dict(spec.hyperparameters)
        return body

    def to_canonical_request(
        self, kind: OperationKind, body: Mapping[str, Any]
    ) -> CanonicalRequest:
        """Parse an OpenAI request body into a canonical request"""
        kind = OperationKind(kind)
        messages: List[Message] = []
        fine_tune = None

        if kind is OperationKind.chat:
            for msg in body.get("messages", []):
                messages.append(
                    Message(
                        role=msg.get("role", "user"),
                        content=msg.get("content") or "",
                        name=msg.get("name"),
                    )
                )
        elif kind is OperationKind.completion:
            prompt = body.get("prompt", "")
            prompts = prompt if isinstance(prompt, list) else [prompt]
            messages = [Message(content=p) for p in prompts]
        elif kind is OperationKind.embedding:
            value = body.get("input", [])
            inputs = value if isinstance(value, list) else [value]
            messages = [Message(content=text) for text in inputs]
        elif kind is OperationKind.fine_tune:
            hyperparameters = {
                k: v
                for k, v in (body.get("hyperparameters") or {}).items()
                if isinstance(v, (int, float)) and not isinstance(v, bool)
            }
            fine_tune = FineTuneJobSpec(
                dataset=body.get("training_file", ""),
                base_model=body.get("model", ""),
                hyperparameters=hyperparameters,
                validation_dataset=body.get("validation_file"),
                suffix=body.get("suffix"),
            )
        else:
            raise unsupported_capability(self.provider_name, kind.value)

        return CanonicalRequest(
            kind=kind,
            model=body.get("model", ""),
            messages=tuple(messages),
            parameters=self.parameters_from_body(body, kind),
            stream=bool(body.get("stream", False)),
            fine_tune=fine_tune,
        )

    # Inbound -------------------------------------------------------------

    def parse_response(self, kind: OperationKind, body: Any) -> CanonicalResponse:
        """Convert an OpenAI response body into a canonical response"""
        if kind is OperationKind.fine_tune:
            return CanonicalResponse(
                kind=kind, model=body.get("model"), job=self.parse_job(body), raw=body
            )

        if kind is OperationKind.embedding:
            items = tuple(
                ResultItem(
                    index=entry.get("index", position),
                    content=None,
                    embedding=tuple(entry["embedding"]),
                )
                for position, entry in enumerate(body["data"])
            )
        else:
            items = tuple(
                self._choice_to_item(choice, position)
                for position, choice in enumerate(body["choices"])
            )

        return CanonicalResponse(
            kind=kind,
            model=body.get("model"),
            items=items,
            usage=self._usage(body.get("usage")),
            raw=body,
        )

    def _choice_to_item(self, choice: Mapping[str, Any], position: int) -> ResultItem:
        if "message" in choice:
            message = choice.get("message") or {}
            content = message.get("content")
            role = message.get("role") or "assistant"
        else:
            content = choice.get("text")
            role = "assistant"
        return ResultItem(
            index=choice.get("index", position),
            role=role,
            content=content,
            finish_reason=self.map_finish_reason(choice.get("finish_reason")),
        )

    def _usage(self, usage: Optional[Mapping[str, Any]]) -> Optional[UsageStatistics]:
        if not usage:
            return None
        return UsageStatistics(
            prompt_tokens=usage.get("prompt_tokens") or 0,
            completion_tokens=usage.get("completion_tokens") or 0,
            total_tokens=usage.get("total_tokens") or 0,
        )

    def parse_job(self, body: Mapping[str, Any]) -> FineTuneJob:
        error = body.get("error")
        message = error.get("message") if isinstance(error, dict) else None
        return FineTuneJob(
            job_id=body["id"],
            status=self.map_job_state(body.get("status")),
            fine_tuned_model=body.get("fine_tuned_model"),
            error=message or None,
        )

    def from_stream_event(
        self, kind: OperationKind, event: Mapping[str, Any]
    ) -> Optional[CanonicalResult]:
        """Convert one OpenAI ``chat.completion.chunk``/completion chunk"""
        if "error" in event:
            error = event.get("error") or {}
            return self.classify_error(
                ProviderError(
                    code=error.get("code") or error.get("type"),
                    message=error.get("message", ""),
                    body=event,
                )
            )

        items = []
        for position, choice in enumerate(event.get("choices") or []):
            if "delta" in choice:
                content = (choice.get("delta") or {}).get("content")
            else:
                content = choice.get("text")
            finish_reason = self.map_finish_reason(choice.get("finish_reason"))
            if content is None and finish_reason is None:
                continue
            items.append(
                ResultItem(
                    index=choice.get("index", position),
                    content=content,
                    finish_reason=finish_reason,
                )
            )

        usage = self._usage(event.get("usage"))
        if not items and usage is None:
            return None

        return CanonicalResponse(
            kind=kind,
            model=event.get("model"),
            items=tuple(items),
            usage=usage,
            partial=True,
            raw=event,
        )


class OpenAIHandler(BaseHandler):
    """Handler for OpenAI and OpenAI-compatible providers"""

    transformer_class = OpenAITransformer
