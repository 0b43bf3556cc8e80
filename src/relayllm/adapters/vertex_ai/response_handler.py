"""Response handling for the Vertex AI transformer"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ...core.base_transformer import CanonicalResult
from ...core.exceptions import ErrorKind
from ...core.schema import (
    CanonicalResponse,
    FineTuneJob,
    FinishReason,
    JobStatus,
    OperationKind,
    ResultItem,
    UsageStatistics,
)
from ...core.transport import ProviderError


class VertexResponseHandler:
    """Turn Vertex AI response bodies into canonical responses

    Mixed into ``VertexAITransformer``; relies on the mapping helpers of
    ``BaseTransformer``.
    """

    # Google RPC status names, https://cloud.google.com/apis/design/errors
    error_codes = {
        "UNAUTHENTICATED": ErrorKind.AUTH_ERROR,
        "PERMISSION_DENIED": ErrorKind.AUTH_ERROR,
        "RESOURCE_EXHAUSTED": ErrorKind.RATE_LIMITED,
        "INVALID_ARGUMENT": ErrorKind.INVALID_REQUEST,
        "FAILED_PRECONDITION": ErrorKind.INVALID_REQUEST,
        "NOT_FOUND": ErrorKind.INVALID_REQUEST,
        "OUT_OF_RANGE": ErrorKind.INVALID_REQUEST,
        "ALREADY_EXISTS": ErrorKind.INVALID_REQUEST,
        "UNAVAILABLE": ErrorKind.PROVIDER_UNAVAILABLE,
        "INTERNAL": ErrorKind.PROVIDER_UNAVAILABLE,
        "ABORTED": ErrorKind.PROVIDER_UNAVAILABLE,
        "DEADLINE_EXCEEDED": ErrorKind.TIMEOUT,
    }

    finish_reasons = {
        "STOP": FinishReason.stop,
        "MAX_TOKENS": FinishReason.length,
        "SAFETY": FinishReason.content_filter,
        "RECITATION": FinishReason.content_filter,
        "BLOCKLIST": FinishReason.content_filter,
        "PROHIBITED_CONTENT": FinishReason.content_filter,
        "SPII": FinishReason.content_filter,
        "MALFORMED_FUNCTION_CALL": FinishReason.error,
    }

    job_states = {
        "JOB_STATE_QUEUED": JobStatus.pending,
        "JOB_STATE_PENDING": JobStatus.pending,
        "JOB_STATE_RUNNING": JobStatus.running,
        "JOB_STATE_CANCELLING": JobStatus.running,
        "JOB_STATE_PAUSED": JobStatus.running,
        "JOB_STATE_UPDATING": JobStatus.running,
        "JOB_STATE_SUCCEEDED": JobStatus.succeeded,
        "JOB_STATE_FAILED": JobStatus.failed,
        "JOB_STATE_EXPIRED": JobStatus.failed,
        "JOB_STATE_CANCELLED": JobStatus.cancelled,
    }

    def parse_response(self, kind: OperationKind, body: Any) -> CanonicalResponse:
        """Convert a Vertex AI response body into a canonical response"""
        if kind is OperationKind.fine_tune:
            return CanonicalResponse(
                kind=kind, model=body.get("baseModel"), job=self.parse_job(body), raw=body
            )
        if kind is OperationKind.embedding:
            return self._parse_embeddings(kind, body)
        if kind is OperationKind.online_predict:
            return CanonicalResponse(
                kind=kind,
                model=body.get("deployedModelId"),
                items=tuple(
                    ResultItem(
                        index=position,
                        content=prediction if isinstance(prediction, str) else None,
                        prediction=prediction,
                    )
                    for position, prediction in enumerate(body["predictions"])
                ),
                raw=body,
            )

        return CanonicalResponse(
            kind=kind,
            model=body.get("modelVersion"),
            items=self._candidates_to_items(body),
            usage=self._usage(body.get("usageMetadata")),
            raw=body,
        )

    def _candidates_to_items(self, body: Mapping[str, Any], partial: bool = False) -> tuple:
        candidates = body.get("candidates") or []
        if not candidates and not partial:
            # A prompt blocked before generation yields no candidates
            block_reason = (body.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                return (ResultItem(index=0, content="", finish_reason=FinishReason.content_filter),)
            if "candidates" not in body:
                raise KeyError("candidates")
            return ()

        items: List[ResultItem] = []
        for position, candidate in enumerate(candidates):
            parts = (candidate.get("content") or {}).get("parts") or []
            text = "".join(part.get("text", "") for part in parts if "text" in part)
            finish_reason = self.map_finish_reason(candidate.get("finishReason"))
            if partial and not text and finish_reason is None:
                continue
            items.append(
                ResultItem(
                    index=candidate.get("index", position),
                    content=text,
                    finish_reason=finish_reason,
                )
            )
        return tuple(items)

    def _parse_embeddings(self, kind: OperationKind, body: Mapping[str, Any]) -> CanonicalResponse:
        items = []
        prompt_tokens = 0
        for position, prediction in enumerate(body["predictions"]):
            embeddings = prediction["embeddings"]
            prompt_tokens += int((embeddings.get("statistics") or {}).get("token_count") or 0)
            items.append(
                ResultItem(index=position, embedding=tuple(embeddings["values"]))
            )
        return CanonicalResponse(
            kind=kind,
            items=tuple(items),
            usage=UsageStatistics(prompt_tokens=prompt_tokens) if prompt_tokens else None,
            raw=body,
        )

    def _usage(self, metadata: Optional[Mapping[str, Any]]) -> Optional[UsageStatistics]:
        if not metadata:
            return None
        return UsageStatistics(
            prompt_tokens=metadata.get("promptTokenCount") or 0,
            completion_tokens=metadata.get("candidatesTokenCount") or 0,
            total_tokens=metadata.get("totalTokenCount") or 0,
        )

    def parse_job(self, body: Mapping[str, Any]) -> FineTuneJob:
        tuned = body.get("tunedModel") or {}
        error = body.get("error") or {}
        return FineTuneJob(
            job_id=body["name"],
            status=self.map_job_state(body.get("state")),
            fine_tuned_model=tuned.get("endpoint") or tuned.get("model"),
            error=error.get("message") or None,
        )

    def from_stream_event(
        self, kind: OperationKind, event: Mapping[str, Any]
    ) -> Optional[CanonicalResult]:
        """Convert one ``streamGenerateContent`` chunk"""
        if "error" in event:
            error: Dict[str, Any] = event.get("error") or {}
            status = error.get("code")
            return self.classify_error(
                ProviderError(
                    status_code=status if isinstance(status, int) else None,
                    code=error.get("status"),
                    message=error.get("message", ""),
                    body=event,
                )
            )

        items = self._candidates_to_items(event, partial=True)
        usage = self._usage(event.get("usageMetadata"))
        if not items and usage is None:
            return None
        return CanonicalResponse(
            kind=kind,
            model=event.get("modelVersion"),
            items=items,
            usage=usage,
            partial=True,
            raw=event,
        )
