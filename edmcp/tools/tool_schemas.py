"""Static tool catalog returned by `tools/list`.

Each property documents its default so MCP clients (LM Studio, Claude Desktop)
can show it; the defaults themselves are applied in `edmcp.tools.generate_image`.
"""

from __future__ import annotations

from typing import Any

from edmcp.config import Settings
from edmcp.rpc.types import Tool

GENERATE_IMAGE = "generate_image"


def generate_image_input_schema(settings: Settings) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            # no default: a prompt is always required
            "prompt": {
                "type": "string",
                "description": "The text prompt describing the image to generate",
            },
            "negative_prompt": {
                "type": "string",
                "description": "What to avoid in the generated image (optional)",
                "default": settings.DEFAULT_NEGATIVE_PROMPT,
            },
            "width": {
                "type": "integer",
                "description": "Image width in pixels",
                "default": 1280,
            },
            "height": {
                "type": "integer",
                "description": "Image height in pixels",
                "default": 960,
            },
            "num_outputs": {
                "type": "integer",
                "description": "Number of images to generate",
                "default": 1,
            },
            "num_inference_steps": {
                "type": "integer",
                "description": "Number of inference steps",
                "default": 25,
            },
            "guidance_scale": {
                "type": "number",
                "description": "Guidance scale for prompt adherence",
                "default": 7.5,
            },
            "seed": {
                "type": "integer",
                "description": "Random seed (-1 for random)",
                "default": -1,
            },
            "sampler_name": {
                "type": "string",
                "description": "Sampler algorithm",
                "default": "deis",
            },
            "use_stable_diffusion_model": {
                "type": "string",
                "description": (
                    "Model to use - specify type (such as SDXL or Flux) "
                    "or specific model (such as animagineXL40_v4Opt)"
                ),
                "default": settings.DEFAULT_MODEL,
            },
        },
        "required": ["prompt"],
    }


def get_tool_catalog(settings: Settings) -> list[Tool]:
    return [
        Tool(
            name=GENERATE_IMAGE,
            description="Generate an image using Easy Diffusion based on a text prompt",
            inputSchema=generate_image_input_schema(settings),
        )
    ]
