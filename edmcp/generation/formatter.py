"""Render a generation outcome as an MCP tool result."""

from __future__ import annotations

import logging

from edmcp.generation.types import GenerationFailed, GenerationOutcome
from edmcp.rpc.types import ImageContent, TextContent, ToolCallResult

logger = logging.getLogger(__name__)

NO_IMAGES_TEXT = "No images generated"
FAILURE_PREFIX = "Image generation failed: "


def format_outcome(outcome: GenerationOutcome) -> ToolCallResult:
    if isinstance(outcome, GenerationFailed):
        return ToolCallResult(
            content=[TextContent(text=FAILURE_PREFIX + outcome.message)],
            isError=True,
        )

    if not outcome.images:
        return ToolCallResult(content=[TextContent(text=NO_IMAGES_TEXT)], isError=False)

    # Only the first image is returned even when num_outputs > 1
    image = outcome.images[0]
    data = image.base64_payload
    logger.debug("Image data length: %d bytes (base64)", len(data))
    return ToolCallResult(
        content=[ImageContent(data=data, mimeType=image.mime_type)],
        isError=False,
    )
