"""Shared types for the generation pipeline: inputs, backend responses and outcomes."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

IMAGE_MIME_TYPE = "image/png"


class GenerationInput(BaseModel):
    """Validated arguments of one `generate_image` call. Immutable once built."""

    model_config = ConfigDict(frozen=True, extra="ignore", allow_inf_nan=False)

    prompt: str = Field(min_length=1)
    negative_prompt: str = ""
    width: int = 1280
    height: int = 960
    num_outputs: int = 1
    num_inference_steps: int = 25
    guidance_scale: float = 7.5
    seed: int = -1
    sampler_name: str = "deis"
    use_stable_diffusion_model: str


@dataclass(frozen=True)
class GeneratedImage:
    data: str
    mime_type: str = IMAGE_MIME_TYPE

    @property
    def base64_payload(self) -> str:
        """The image bytes as bare base64, without any `data:<mime>;base64,` header."""
        if self.data.startswith("data:") and "," in self.data:
            return self.data.split(",", 1)[1]
        return self.data


# ---------------------------------------------------------------------------
# Outcome of a generation job
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GenerationSucceeded:
    images: tuple[GeneratedImage, ...] = ()


@dataclass(frozen=True)
class GenerationFailed:
    message: str


GenerationOutcome = Union[GenerationSucceeded, GenerationFailed]


# ---------------------------------------------------------------------------
# Immediate response of the render endpoint, one variant per shape
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InlineImagesResponse:
    """`{"images": [...]}`: the job finished synchronously."""

    images: tuple[str, ...]
    kind: Literal["images"] = "images"


@dataclass(frozen=True)
class StreamResponse:
    """`{"stream": "/image/stream/..."}`: progress must be polled from `url`."""

    url: str
    kind: Literal["stream"] = "stream"


@dataclass(frozen=True)
class OutputResponse:
    """`{"output": [...]}`: entries were strings or `{"data": ...}` objects."""

    images: tuple[str, ...]
    kind: Literal["output"] = "output"


RenderResponse = Union[InlineImagesResponse, StreamResponse, OutputResponse]


# ---------------------------------------------------------------------------
# Poll loop state
# ---------------------------------------------------------------------------

class PollPhase(str, enum.Enum):
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed-out"
    EXHAUSTED = "exhausted"


@dataclass
class PollState:
    started_at: float = field(default_factory=time.monotonic)
    attempts: int = 0
    phase: PollPhase = PollPhase.POLLING
    backend_status: str | None = None
    images: list[GeneratedImage] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.phase is not PollPhase.POLLING
