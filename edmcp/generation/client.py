"""Easy Diffusion HTTP client: submits render jobs and collects their images.

A render request is answered in one of three shapes:

  {"images": ["<b64>", ...]}                    finished synchronously
  {"stream": "/image/stream/<task>", ...}       poll the stream for progress
  {"output": ["<b64>" | {"data": "<b64>"}]}     finished, legacy output shape

Every failure (HTTP status, transport, unexpected body) is returned as a
GenerationFailed value rather than raised.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any
from urllib.parse import urljoin

import httpx

from edmcp.config import Settings
from edmcp.generation.poller import PollLoop, extract_output_images, extract_plain_images
from edmcp.generation.request_builder import build_payload
from edmcp.generation.types import (
    GeneratedImage,
    GenerationFailed,
    GenerationInput,
    GenerationOutcome,
    GenerationSucceeded,
    InlineImagesResponse,
    OutputResponse,
    RenderResponse,
    StreamResponse,
)

logger = logging.getLogger(__name__)


def parse_render_response(body: Any, base_url: str) -> RenderResponse | None:
    """Classify a `/render` response body; None when no known shape is present."""
    if not isinstance(body, dict):
        return None
    if "images" in body:
        if not isinstance(body["images"], list):
            return None
        return InlineImagesResponse(tuple(img.data for img in extract_plain_images(body["images"])))
    if "stream" in body and isinstance(body["stream"], str):
        stream_url = body["stream"]
        if stream_url.startswith("/"):
            return StreamResponse(base_url + stream_url)
        return StreamResponse(urljoin(base_url + "/", stream_url))
    if "output" in body and isinstance(body["output"], list):
        return OutputResponse(tuple(img.data for img in extract_output_images(body["output"])))
    return None


class GenerationClient:
    """HTTP client for the Easy Diffusion render API."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.EASY_DIFFUSION_ADDRESS
        self._transport = transport

    def _new_http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.REQUEST_TIMEOUT_SECONDS, connect=10.0),
            transport=self._transport,
        )

    def _new_poll_loop(self, http: httpx.AsyncClient) -> PollLoop:
        return PollLoop(
            http,
            interval=self._settings.POLL_INTERVAL_SECONDS,
            timeout=self._settings.POLL_TIMEOUT_SECONDS,
            max_attempts=self._settings.POLL_MAX_ATTEMPTS,
        )

    async def generate(self, inp: GenerationInput) -> GenerationOutcome:
        payload = build_payload(inp)
        payload["session_id"] = str(int(time.time() * 1000))
        logger.info(
            "Sending to Easy Diffusion: prompt=%r, negative_prompt=%r, model=%s",
            payload["prompt"], payload["negative_prompt"], payload["use_stable_diffusion_model"],
        )

        async with self._new_http_client() as http:
            return await self._submit(http, payload)

    async def _submit(self, http: httpx.AsyncClient, payload: dict[str, Any]) -> GenerationOutcome:
        try:
            resp = await http.post(self._settings.render_url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Render request failed: %s: %s", type(e).__name__, e)
            return GenerationFailed(f"Request to Easy Diffusion failed: {type(e).__name__}: {e}")

        if not resp.is_success:
            return GenerationFailed(f"Easy Diffusion returned HTTP {resp.status_code}: {resp.text}")

        try:
            body = resp.json()
        except json.JSONDecodeError as e:
            return GenerationFailed(f"Easy Diffusion returned invalid JSON: {e}")

        rendered = parse_render_response(body, self._base_url)
        if rendered is None:
            return GenerationFailed("No images in Easy Diffusion response")

        logger.debug("Render response shape: %s", rendered.kind)
        if rendered.kind == "stream":
            return await self._new_poll_loop(http).run(rendered.url)
        return GenerationSucceeded(tuple(GeneratedImage(data) for data in rendered.images))
