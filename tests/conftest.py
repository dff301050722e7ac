from __future__ import annotations

import json
from typing import Any, AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from edmcp.config import Settings
from edmcp.generation.client import GenerationClient
from edmcp.main import create_app

ED_ADDRESS = "http://easydiffusion.test:9000"
STREAM_PATH = "/image/stream/1234"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "EASY_DIFFUSION_ADDRESS": ED_ADDRESS,
        "DEFAULT_MODEL": "animagineXL40_v4Opt",
        "POLL_INTERVAL_SECONDS": 0.0,
        "POLL_TIMEOUT_SECONDS": 30.0,
        "POLL_MAX_ATTEMPTS": 20,
        "LOG_TO_FILE": False,
        "LOG_LEVEL": "DEBUG",
    }
    values.update(overrides)
    return Settings(**values)


class FakeEasyDiffusion:
    """Scriptable stand-in for the Easy Diffusion HTTP API.

    `render_response` is returned by POST /render; `stream_bodies` are served
    in order by GET on the stream URL, the last one repeating forever.
    """

    def __init__(self) -> None:
        self.render_status = 200
        self.render_response: Any = {"status": "Online", "queue": 1, "stream": STREAM_PATH, "task": 1234}
        self.stream_bodies: list[str] = [json.dumps({"status": "succeeded", "output": [{"data": "AAAA"}]})]
        self.render_payloads: list[dict[str, Any]] = []
        self.stream_requests = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == "/render":
            self.render_payloads.append(json.loads(request.content))
            if isinstance(self.render_response, str):
                return httpx.Response(self.render_status, text=self.render_response)
            return httpx.Response(self.render_status, json=self.render_response)

        if request.method == "GET" and request.url.path == STREAM_PATH:
            index = min(self.stream_requests, len(self.stream_bodies) - 1)
            self.stream_requests += 1
            return httpx.Response(200, text=self.stream_bodies[index])

        return httpx.Response(404, json={"detail": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def backend() -> FakeEasyDiffusion:
    return FakeEasyDiffusion()


@pytest.fixture
def generation_client(settings: Settings, backend: FakeEasyDiffusion) -> GenerationClient:
    return GenerationClient(settings, transport=backend.transport)


@pytest.fixture
def app(settings: Settings, generation_client: GenerationClient):
    return create_app(settings, generation_client=generation_client)


@pytest_asyncio.fixture
async def app_client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def rpc(method: str, params: Any = None, request_id: Any = 1) -> dict[str, Any]:
    body: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        body["params"] = params
    return body
