from edmcp.generation.types import (
    GeneratedImage,
    GenerationFailed,
    GenerationInput,
    GenerationOutcome,
    GenerationSucceeded,
)

__all__ = [
    "GeneratedImage",
    "GenerationFailed",
    "GenerationInput",
    "GenerationOutcome",
    "GenerationSucceeded",
]
