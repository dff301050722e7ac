"""Stream poller: waits for an asynchronous Easy Diffusion job to finish.

Easy Diffusion answers a render request with a `stream` URL. Each GET on that
URL returns the progress snapshots produced so far as newline-delimited JSON;
the last parseable line is the current state of the job:

  {"step": 3, "total_steps": 25}
  {"status": "succeeded", "output": [{"data": "data:image/png;base64,..."}]}
  {"status": "failed", "detail": "CUDA out of memory"}

The loop ends on `succeeded`, `failed`, the elapsed-time ceiling or the
attempt ceiling. Network errors, empty bodies and unparseable snapshots are
transient and only cost an attempt. The caller's task is suspended with
`asyncio.sleep` between attempts, so other connections keep being served.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable

import httpx

from edmcp.generation.types import (
    GeneratedImage,
    GenerationFailed,
    GenerationOutcome,
    GenerationSucceeded,
    PollPhase,
    PollState,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_POLL_TIMEOUT = 300.0
DEFAULT_MAX_ATTEMPTS = 300
MIN_REQUEST_TIMEOUT = 0.1


def extract_output_images(items: Any) -> list[GeneratedImage]:
    """Collect images from an `output` array of strings or `{"data": ...}` objects."""
    images: list[GeneratedImage] = []
    if not isinstance(items, list):
        return images
    for item in items:
        if isinstance(item, dict) and isinstance(item.get("data"), str):
            images.append(GeneratedImage(item["data"]))
        elif isinstance(item, str):
            images.append(GeneratedImage(item))
    return images


def extract_plain_images(items: Any) -> list[GeneratedImage]:
    if not isinstance(items, list):
        return []
    return [GeneratedImage(item) for item in items if isinstance(item, str)]


def parse_latest_snapshot(text: str) -> dict[str, Any] | None:
    """Return the last line of *text* that parses as a JSON object, or None."""
    lines = [line for line in text.strip().split("\n") if line.strip()]
    for index in range(len(lines) - 1, -1, -1):
        try:
            parsed = json.loads(lines[index])
        except json.JSONDecodeError as e:
            logger.debug("Failed to parse stream line %d: %s", index, e)
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


class PollLoop:
    """Polls one stream URL until the job reaches a terminal state."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._http = http
        self._interval = interval
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._clock = clock
        self._sleep = sleep

    async def run(self, stream_url: str) -> GenerationOutcome:
        state = PollState(started_at=self._clock())
        logger.info(
            "Polling %s (interval %.1fs, max attempts %d, timeout %.0fs)",
            stream_url, self._interval, self._max_attempts, self._timeout,
        )

        while True:
            state.attempts += 1
            elapsed = self._clock() - state.started_at

            if elapsed > self._timeout:
                state.phase = PollPhase.TIMED_OUT
                logger.warning("Generation timed out after %.1fs", elapsed)
                return GenerationFailed(f"Generation timed out after {elapsed:.1f}s")

            if state.attempts > self._max_attempts:
                state.phase = PollPhase.EXHAUSTED
                logger.warning("Maximum polling attempts reached (%d)", self._max_attempts)
                return GenerationFailed(f"Maximum polling attempts reached ({self._max_attempts})")

            logger.debug("Poll attempt %d at %.1fs", state.attempts, elapsed)
            snapshot = await self._fetch_snapshot(stream_url, self._timeout - elapsed)
            if snapshot is not None:
                outcome = self._advance(state, snapshot)
                if state.is_terminal:
                    return outcome

            await self._sleep(self._interval)

    async def _fetch_snapshot(self, stream_url: str, remaining: float) -> dict[str, Any] | None:
        # A stalled GET may not outlive the overall poll ceiling
        try:
            resp = await self._http.get(stream_url, timeout=max(remaining, MIN_REQUEST_TIMEOUT))
            text = resp.text
        except httpx.HTTPError as e:
            logger.warning("Error during polling (will retry): %s: %s", type(e).__name__, e)
            return None

        logger.debug("Stream response status %d, body length %d", resp.status_code, len(text))
        if not text.strip():
            return None

        snapshot = parse_latest_snapshot(text)
        if snapshot is None:
            logger.debug("Could not parse any JSON from stream response")
        return snapshot

    def _advance(self, state: PollState, snapshot: dict[str, Any]) -> GenerationOutcome | None:
        status = snapshot.get("status")
        state.backend_status = status if isinstance(status, str) else None

        if status == "succeeded":
            state.phase = PollPhase.SUCCEEDED
            state.images = extract_output_images(snapshot.get("output"))
            if not state.images:
                state.images = extract_plain_images(snapshot.get("images"))
            if state.images:
                logger.info("Generation succeeded with %d image(s)", len(state.images))
            else:
                logger.info("Generation succeeded but no images found")
            return GenerationSucceeded(tuple(state.images))

        if status == "failed":
            state.phase = PollPhase.FAILED
            detail = snapshot.get("detail")
            message = detail if isinstance(detail, str) and detail else "Unknown error"
            logger.warning("Generation failed: %s", message)
            return GenerationFailed(f"Generation failed: {message}")

        step = snapshot.get("step")
        total_steps = snapshot.get("total_steps")
        if step is not None and total_steps is not None:
            logger.info("Progress: step %s/%s", step, total_steps)
        elif step is not None:
            logger.info("Step: %s", step)
        elif state.backend_status:
            logger.debug("Backend status: %s", state.backend_status)
        return None
