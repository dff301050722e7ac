"""The `generate_image` tool: argument parsing and the generation pipeline."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from edmcp.config import Settings
from edmcp.generation.client import GenerationClient
from edmcp.generation.formatter import format_outcome
from edmcp.generation.types import GenerationInput
from edmcp.rpc.types import ToolCallResult

logger = logging.getLogger(__name__)


class InvalidToolArguments(ValueError):
    def __init__(self, message: str, detail: Any = None) -> None:
        super().__init__(message)
        self.detail = detail


def parse_tool_arguments(arguments: Any, settings: Settings) -> GenerationInput:
    """Validate raw tool arguments and fill in configured defaults."""
    if not isinstance(arguments, dict):
        raise InvalidToolArguments("Invalid tool input: arguments must be an object")

    values = dict(arguments)
    # negative_prompt must reach the backend as a string, never null
    if not values.get("negative_prompt"):
        values["negative_prompt"] = settings.DEFAULT_NEGATIVE_PROMPT
    if not values.get("use_stable_diffusion_model"):
        values["use_stable_diffusion_model"] = settings.DEFAULT_MODEL
    if isinstance(values.get("prompt"), str):
        values["prompt"] = values["prompt"].strip()

    try:
        return GenerationInput.model_validate(values)
    except ValidationError as e:
        raise InvalidToolArguments("Invalid tool input", detail=str(e)) from e


async def tool_generate_image(
    arguments: Any,
    *,
    settings: Settings,
    client: GenerationClient,
) -> ToolCallResult:
    inp = parse_tool_arguments(arguments, settings)
    logger.info(
        "Tool call parameters: prompt=%r, width=%d, height=%d, steps=%d, model=%s",
        inp.prompt, inp.width, inp.height, inp.num_inference_steps, inp.use_stable_diffusion_model,
    )
    outcome = await client.generate(inp)
    return format_outcome(outcome)
