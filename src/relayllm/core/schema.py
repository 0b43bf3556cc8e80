"""Canonical request/response model shared by every provider adapter

All models are immutable. Constructing a request with missing or inconsistent
fields raises ``CanonicalError`` with kind ``invalid_request``; transformations
always produce new instances.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .exceptions import CanonicalError, ErrorKind


class OperationKind(str, Enum):
    chat = "chat"
    completion = "completion"
    embedding = "embedding"
    fine_tune = "fine_tune"
    online_predict = "online_predict"


# Operation kinds that may be served as a stream of fragments
STREAMABLE_KINDS = frozenset({OperationKind.chat, OperationKind.completion})


class Role(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"
    tool = "tool"


class FinishReason(str, Enum):
    stop = "stop"
    length = "length"
    content_filter = "content_filter"
    tool_calls = "tool_calls"
    error = "error"
    other = "other"


class JobStatus(str, Enum):
    pending = "pending"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.succeeded, JobStatus.failed, JobStatus.cancelled)


class CanonicalModel(BaseModel):
    """Frozen base model that reports validation failures as InvalidRequest"""

    model_config = ConfigDict(frozen=True)

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise CanonicalError(
                ErrorKind.INVALID_REQUEST,
                f"Invalid {type(self).__name__}: {_summarize(exc)}",
                details={"errors": exc.errors(include_url=False)},
            ) from exc


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors(include_url=False):
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


class Message(CanonicalModel):
    """A single conversation turn or prediction instance"""

    role: Role = Role.user
    # JSON objects are used for structured online-prediction instances
    content: Union[str, Dict[str, Any]] = ""
    name: Optional[str] = None

    @property
    def text(self) -> str:
        return self.content if isinstance(self.content, str) else ""


class GenerationParameters(CanonicalModel):
    """Optional sampling/generation knobs in provider-neutral names"""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop_sequences: Optional[Tuple[str, ...]] = None
    seed: Optional[int] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    n: Optional[int] = Field(default=None, ge=1)
    dimensions: Optional[int] = Field(default=None, ge=1)

    def set_fields(self) -> Dict[str, Any]:
        """Return non-None parameters in declaration order"""
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if getattr(self, name) is not None
        }


class HyperparameterRange(CanonicalModel):
    """Provider-declared accepted range for one fine-tuning hyperparameter"""

    minimum: float
    maximum: float
    integer: bool = False

    def check(self, name: str, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CanonicalError(
                ErrorKind.INVALID_REQUEST,
                f"Hyperparameter '{name}' must be numeric, got {value!r}",
            )
        if self.integer and not float(value).is_integer():
            raise CanonicalError(
                ErrorKind.INVALID_REQUEST,
                f"Hyperparameter '{name}' must be an integer, got {value!r}",
            )
        if not self.minimum <= value <= self.maximum:
            raise CanonicalError(
                ErrorKind.INVALID_REQUEST,
                f"Hyperparameter '{name}'={value!r} outside "
                f"[{self.minimum}, {self.maximum}]",
            )


class FineTuneJobSpec(CanonicalModel):
    """Description of a fine-tuning job to submit"""

    dataset: str = Field(min_length=1)
    base_model: str = Field(min_length=1)
    hyperparameters: Dict[str, Union[int, float]] = Field(default_factory=dict)
    validation_dataset: Optional[str] = None
    suffix: Optional[str] = None


class CanonicalRequest(CanonicalModel):
    """Provider-agnostic request; the operation kind is fixed at construction"""

    kind: OperationKind
    model: str = Field(min_length=1)
    messages: Tuple[Message, ...] = ()
    parameters: GenerationParameters = Field(default_factory=GenerationParameters)
    stream: bool = False
    fine_tune: Optional[FineTuneJobSpec] = None
    timeout: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_consistency(self) -> "CanonicalRequest":
        if not self.model.strip():
            raise ValueError("model identifier must not be blank")
        if self.kind is OperationKind.fine_tune:
            if self.fine_tune is None:
                raise ValueError("fine_tune requests require a fine_tune job spec")
            if self.fine_tune.base_model != self.model:
                raise ValueError("fine_tune.base_model must match the request model")
        else:
            if self.fine_tune is not None:
                raise ValueError(f"fine_tune spec not allowed for kind '{self.kind.value}'")
            if not self.messages:
                raise ValueError(f"'{self.kind.value}' requests require at least one message")
        if self.stream and self.kind not in STREAMABLE_KINDS:
            raise ValueError(f"'{self.kind.value}' requests cannot be streamed")
        return self

    @classmethod
    def for_fine_tune(
        cls, spec: FineTuneJobSpec, timeout: Optional[float] = None
    ) -> "CanonicalRequest":
        return cls(
            kind=OperationKind.fine_tune,
            model=spec.base_model,
            fine_tune=spec,
            timeout=timeout,
        )


class UsageStatistics(CanonicalModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @model_validator(mode="before")
    @classmethod
    def _fill_total(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("total_tokens"):
            data = dict(data)
            data["total_tokens"] = (data.get("prompt_tokens") or 0) + (
                data.get("completion_tokens") or 0
            )
        return data


class ResultItem(CanonicalModel):
    """One generated item: a message, a text delta, an embedding or a prediction"""

    index: int = 0
    role: Role = Role.assistant
    content: Optional[str] = None
    finish_reason: Optional[FinishReason] = None
    embedding: Optional[Tuple[float, ...]] = None
    prediction: Any = None


class FineTuneJob(CanonicalModel):
    job_id: str = Field(min_length=1)
    status: JobStatus
    fine_tuned_model: Optional[str] = None
    error: Optional[str] = None


class CanonicalResponse(CanonicalModel):
    """Provider-agnostic response, or a partial fragment of a streamed one"""

    kind: OperationKind
    model: Optional[str] = None
    items: Tuple[ResultItem, ...] = ()
    usage: Optional[UsageStatistics] = None
    job: Optional[FineTuneJob] = None
    partial: bool = False
    # Provider echo for debugging only; never serialized
    raw: Any = Field(default=None, exclude=True, repr=False)

    @property
    def text(self) -> str:
        return "".join(item.content or "" for item in self.items)
