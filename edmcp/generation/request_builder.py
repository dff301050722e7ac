"""Translate a GenerationInput into an Easy Diffusion `/render` payload.

The base payload copies the caller's arguments and adds the fixed render
options. A fixed, ordered list of model rules then patches it; each rule is a
pure function of the input and returns only the fields it overrides, so a
later rule wins whenever two rules touch the same field:

  1. clamp guidance scale to 7.5
  2. SDXL anime derivatives (animagine/pony/illustrious) enable clip skip
  3. few-step checkpoints (flash/turbo/schnell/lightning) cap steps at 12
  4. flux family: `ae` VAE, guidance 1, clip_l + t5xxl text encoders
  5. chroma family: `ae` VAE, guidance 1 (few-step) or 4, t5xxl text encoder
  6. short aliases ("anime", "sdxl", ...) resolve to a concrete checkpoint

Nothing here does I/O; the submission time stamp (`session_id`) is added by
the client.
"""

from __future__ import annotations

from typing import Any, Callable

from edmcp.generation.types import GenerationInput

RANDOM_SEED = -1
MAX_GUIDANCE_SCALE = 7.5
MAX_FAST_STEPS = 12

ANIME_MARKERS = ("animagine", "pony", "illustrious")
FAST_MARKERS = ("flash", "turbo", "schnell", "lightning")
FLUX_MARKER = "flux"
CHROMA_MARKER = "chroma"

MODEL_ALIASES: dict[str, str] = {
    "anime": "animagineXL_v4Opt",
    "sdxl": "sd_xl_base_1.0_0.9vae",
    "sd": "sd-v1-5",
    "flux": "flux1-dev-bnb-nf4-v2",
    "chroma": "Chroma1-HD-Q6_K",
}

# Render options that are not exposed as tool arguments
FIXED_RENDER_OPTIONS: dict[str, Any] = {
    "scheduler_name": "simple",
    "use_vae_model": "",
    "clip_skip": False,
    "enable_vae_tiling": True,
    "vram_usage_level": "low",
    "output_format": "png",
    "output_quality": 75,
    "output_lossless": False,
    "stream_progress_updates": True,
    "stream_image_progress": False,
    "show_only_filtered_image": True,
    "block_nsfw": False,
    "metadata_output_format": "none",
}

PayloadPatch = dict[str, Any]
ModelRule = Callable[[GenerationInput], PayloadPatch]


def _has_marker(model: str, *markers: str) -> bool:
    lowered = model.lower()
    return any(marker in lowered for marker in markers)


def normalize_negative_prompt(value: str | None) -> str:
    if not value or value == "none":
        return ""
    return value


def base_payload(inp: GenerationInput) -> dict[str, Any]:
    random_seed = inp.seed == RANDOM_SEED
    payload: dict[str, Any] = {
        "prompt": inp.prompt,
        "negative_prompt": normalize_negative_prompt(inp.negative_prompt),
        "width": inp.width,
        "height": inp.height,
        "num_outputs": inp.num_outputs,
        "num_inference_steps": inp.num_inference_steps,
        "guidance_scale": inp.guidance_scale,
        "seed": 1 if random_seed else inp.seed,
        "used_random_seed": random_seed,
        "sampler_name": inp.sampler_name,
        "use_stable_diffusion_model": inp.use_stable_diffusion_model,
    }
    payload.update(FIXED_RENDER_OPTIONS)
    return payload


# ---------------------------------------------------------------------------
# Model rules
# ---------------------------------------------------------------------------

def clamp_guidance_scale(inp: GenerationInput) -> PayloadPatch:
    return {"guidance_scale": min(inp.guidance_scale, MAX_GUIDANCE_SCALE)}


def anime_clip_skip(inp: GenerationInput) -> PayloadPatch:
    if _has_marker(inp.use_stable_diffusion_model, *ANIME_MARKERS):
        return {"clip_skip": True}
    return {}


def fast_sampler_steps(inp: GenerationInput) -> PayloadPatch:
    if _has_marker(inp.use_stable_diffusion_model, *FAST_MARKERS):
        return {"num_inference_steps": min(inp.num_inference_steps, MAX_FAST_STEPS)}
    return {}


def flux_family(inp: GenerationInput) -> PayloadPatch:
    if not _has_marker(inp.use_stable_diffusion_model, FLUX_MARKER):
        return {}
    return {
        "use_vae_model": "ae",
        "guidance_scale": 1.0,
        "use_text_encoder_model": "['clip_l', 't5xxl_fp16']",
    }


def chroma_family(inp: GenerationInput) -> PayloadPatch:
    model = inp.use_stable_diffusion_model
    if not _has_marker(model, CHROMA_MARKER):
        return {}
    return {
        "use_vae_model": "ae",
        "guidance_scale": 1.0 if _has_marker(model, *FAST_MARKERS) else 4.0,
        "use_text_encoder_model": "t5xxl_fp16",
    }


def resolve_model_alias(inp: GenerationInput) -> PayloadPatch:
    alias = MODEL_ALIASES.get(inp.use_stable_diffusion_model.lower())
    if alias is None:
        return {}
    return {"use_stable_diffusion_model": alias}


MODEL_RULES: tuple[ModelRule, ...] = (
    clamp_guidance_scale,
    anime_clip_skip,
    fast_sampler_steps,
    flux_family,
    chroma_family,
    resolve_model_alias,
)


def build_payload(inp: GenerationInput) -> dict[str, Any]:
    """Build the `/render` payload for *inp*, applying MODEL_RULES in order."""
    payload = base_payload(inp)
    for rule in MODEL_RULES:
        payload.update(rule(inp))
    return payload
