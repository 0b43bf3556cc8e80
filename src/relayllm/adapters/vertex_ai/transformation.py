"""Request transformation for Vertex AI

Vertex AI exposes several API shapes under one project/location prefix:
- ``generateContent`` for Gemini chat (``contents``/``parts``, ``model`` role)
- ``:predict`` with ``instances``/``parameters`` for embeddings and for models
  deployed to an endpoint
- ``tuningJobs`` for supervised fine-tuning
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from ...core.base_transformer import BaseTransformer
from ...core.exceptions import invalid_request, unsupported_capability
from ...core.schema import (
    CanonicalRequest,
    FineTuneJobSpec,
    Message,
    OperationKind,
    Role,
)
from ...core.transport import ProviderRequest
from .response_handler import VertexResponseHandler

# Canonical role -> Vertex AI content role
ROLE_MAP = {
    Role.user: "user",
    Role.assistant: "model",
    Role.tool: "function",
}
REVERSE_ROLE_MAP = {v: k for k, v in ROLE_MAP.items()}

# Canonical hyperparameter -> supervisedTuningSpec.hyperParameters field
HYPERPARAMETER_MAP = {
    "n_epochs": "epochCount",
    "learning_rate_multiplier": "learningRateMultiplier",
}
REVERSE_HYPERPARAMETER_MAP = {v: k for k, v in HYPERPARAMETER_MAP.items()}


class VertexAITransformer(VertexResponseHandler, BaseTransformer):
    """Transformer for Vertex AI (Gemini, embeddings, endpoints, tuning)"""

    alias_table = "vertex_ai"

    def endpoint(self, path: str) -> str:
        if not self.settings.project or not self.settings.location:
            raise invalid_request(
                f"{self.provider_name} requires 'project' and 'location' provider settings"
            )
        return super().endpoint(path)

    def to_provider(self, request: CanonicalRequest) -> ProviderRequest:
        """Convert a canonical request to a Vertex AI request"""
        kind = request.kind
        if kind is OperationKind.chat:
            action = "streamGenerateContent?alt=sse" if request.stream else "generateContent"
            self.require_text(request)
            path = f"publishers/google/models/{request.model}:{action}"
            body = self._generate_content_body(request)
        elif kind is OperationKind.embedding:
            path = f"publishers/google/models/{request.model}:predict"
            body = {"instances": [{"content": text} for text in self.require_text(request)]}
        elif kind is OperationKind.online_predict:
            path = f"endpoints/{request.model}:predict"
            body = {"instances": [self._instance(m) for m in request.messages]}
        elif kind is OperationKind.fine_tune:
            path = "tuningJobs"
            body = self._tuning_job_body(request.model, request.fine_tune)
        else:
            raise unsupported_capability(self.provider_name, kind.value)

        body.update(self.map_parameters(request.parameters, kind))

        return ProviderRequest(
            method="POST",
            url=self.endpoint(path),
            body=body,
            stream=request.stream,
        )

    def to_poll_request(self, job_id: str) -> ProviderRequest:
        """Build a tuning job status request

        Accepts a bare job id or the full resource name returned on submission.
        """
        if job_id.startswith("projects/"):
            # The endpoint check still enforces project/location settings
            self.endpoint("tuningJobs")
            url = f"{self.base_url}/{job_id}"
        else:
            url = self.endpoint(f"tuningJobs/{job_id}")
        return ProviderRequest(method="GET", url=url)

    def _generate_content_body(self, request: CanonicalRequest) -> Dict[str, Any]:
        system_parts: List[Dict[str, str]] = []
        contents: List[Dict[str, Any]] = []
        for message in request.messages:
            if message.role is Role.system:
                system_parts.append({"text": message.text})
                continue
            contents.append(
                {"role": ROLE_MAP[message.role], "parts": [{"text": message.text}]}
            )

        body: Dict[str, Any] = {"contents": contents}
        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}
        return body

    def _instance(self, message: Message) -> Dict[str, Any]:
        if isinstance(message.content, dict):
            return dict(message.content)
        return {"content": message.content}

    def _tuning_job_body(self, model: str, spec: FineTuneJobSpec | None) -> Dict[str, Any]:
        if spec is None:
            raise invalid_request("fine_tune requests require a job spec")
        tuning_spec: Dict[str, Any] = {"trainingDatasetUri": spec.dataset}
        if spec.validation_dataset:
            tuning_spec["validationDatasetUri"] = spec.validation_dataset
        if spec.hyperparameters:
            tuning_spec["hyperParameters"] = {
                HYPERPARAMETER_MAP.get(name, name): value
                for name, value in spec.hyperparameters.items()
            }

        body: Dict[str, Any] = {"baseModel": model, "supervisedTuningSpec": tuning_spec}
        if spec.suffix:
            body["tunedModelDisplayName"] = spec.suffix
        return body

    def to_canonical_request(
        self, kind: OperationKind, body: Mapping[str, Any]
    ) -> CanonicalRequest:
        """Parse a Vertex AI request body into a canonical request

        Vertex AI carries the model in the URL, not the body; it is read from a
        ``model`` key when the caller adds one.
        """
        kind = OperationKind(kind)
        messages: List[Message] = []

        if kind is OperationKind.fine_tune:
            tuning_spec = body.get("supervisedTuningSpec") or {}
            spec = FineTuneJobSpec(
                dataset=tuning_spec.get("trainingDatasetUri", ""),
                base_model=body.get("baseModel", ""),
                hyperparameters={
                    REVERSE_HYPERPARAMETER_MAP.get(name, name): value
                    for name, value in (tuning_spec.get("hyperParameters") or {}).items()
                    if isinstance(value, (int, float)) and not isinstance(value, bool)
                },
                validation_dataset=tuning_spec.get("validationDatasetUri"),
                suffix=body.get("tunedModelDisplayName"),
            )
            return CanonicalRequest.for_fine_tune(spec)

        if kind is OperationKind.chat:
            system = body.get("systemInstruction") or body.get("system_instruction")
            if system:
                text = "".join(part.get("text", "") for part in system.get("parts", []))
                messages.append(Message(role=Role.system, content=text))
            for content in body.get("contents", []):
                text = "".join(part.get("text", "") for part in content.get("parts", []))
                role = REVERSE_ROLE_MAP.get(content.get("role", "user"), Role.user)
                messages.append(Message(role=role, content=text))
        elif kind is OperationKind.embedding:
            messages = [Message(content=i.get("content", "")) for i in body.get("instances", [])]
        elif kind is OperationKind.online_predict:
            for instance in body.get("instances", []):
                if set(instance) == {"content"} and isinstance(instance["content"], str):
                    messages.append(Message(content=instance["content"]))
                else:
                    messages.append(Message(content=dict(instance)))
        else:
            raise unsupported_capability(self.provider_name, kind.value)

        return CanonicalRequest(
            kind=kind,
            model=body.get("model", ""),
            messages=tuple(messages),
            parameters=self.parameters_from_body(body, kind),
        )

    def round_trip_body(self, request: CanonicalRequest) -> Dict[str, Any]:
        body = super().round_trip_body(request)
        if request.kind is not OperationKind.fine_tune:
            # The model travels in the URL path
            body["model"] = request.model
        return body
