from __future__ import annotations

import json
from typing import Any

import pytest
from pydantic import ValidationError

from edmcp.config import Settings
from edmcp.generation.types import GenerationFailed, GenerationInput, GenerationSucceeded
from edmcp.rpc.dispatcher import RequestDispatcher, RequestParseError, parse_request
from edmcp.rpc.types import ErrorCode, RpcRequest
from edmcp.tools.generate_image import InvalidToolArguments, parse_tool_arguments
from tests.conftest import make_settings


class StubClient:
    """Records inputs and returns a canned outcome instead of calling Easy Diffusion."""

    def __init__(self, outcome: Any = None, error: Exception | None = None) -> None:
        self.outcome = outcome if outcome is not None else GenerationSucceeded(())
        self.error = error
        self.inputs: list[GenerationInput] = []

    async def generate(self, inp: GenerationInput):
        self.inputs.append(inp)
        if self.error is not None:
            raise self.error
        return self.outcome


def make_dispatcher(client: Any = None, settings: Settings | None = None) -> RequestDispatcher:
    return RequestDispatcher(settings or make_settings(), client or StubClient())


def call(name: str = "generate_image", arguments: Any = None, request_id: Any = 1) -> RpcRequest:
    return RpcRequest(
        id=request_id,
        method="tools/call",
        params={"name": name, "arguments": arguments if arguments is not None else {"prompt": "a cat"}},
    )


def assert_exactly_one(payload: dict[str, Any]) -> None:
    assert ("result" in payload) != ("error" in payload)


@pytest.mark.asyncio
@pytest.mark.parametrize("request_id", [7, "abc-7", 0, 3.5, None])
async def test_response_id_echoes_request_id(request_id: Any) -> None:
    dispatcher = make_dispatcher()
    for method in ("initialize", "tools/list", "tools/call", "no/such/method"):
        request = call(request_id=request_id) if method == "tools/call" else RpcRequest(id=request_id, method=method)
        payload = (await dispatcher.dispatch(request)).to_payload()
        assert payload["id"] == request_id
        assert type(payload["id"]) is type(request_id)
        assert_exactly_one(payload)


@pytest.mark.asyncio
async def test_initialize_returns_server_metadata() -> None:
    payload = (await make_dispatcher().dispatch(RpcRequest(id=1, method="initialize"))).to_payload()

    assert payload["result"] == {
        "protocolVersion": "2024-11-05",
        "capabilities": {"tools": {}},
        "serverInfo": {"name": "EDMCP", "version": "1.0.0"},
    }


@pytest.mark.asyncio
async def test_tools_list_describes_generate_image() -> None:
    settings = make_settings(DEFAULT_MODEL="flux1-dev")
    payload = (await make_dispatcher(settings=settings).dispatch(RpcRequest(id=1, method="tools/list"))).to_payload()

    tools = payload["result"]["tools"]
    assert [t["name"] for t in tools] == ["generate_image"]
    schema = tools[0]["inputSchema"]
    assert schema["required"] == ["prompt"]
    assert schema["properties"]["width"]["default"] == 1280
    assert schema["properties"]["height"]["default"] == 960
    assert schema["properties"]["sampler_name"]["default"] == "deis"
    assert schema["properties"]["use_stable_diffusion_model"]["default"] == "flux1-dev"


@pytest.mark.asyncio
async def test_unknown_method_is_method_not_found() -> None:
    payload = (await make_dispatcher().dispatch(RpcRequest(id=1, method="resources/list"))).to_payload()

    assert payload["error"]["code"] == ErrorCode.METHOD_NOT_FOUND
    assert "resources/list" in payload["error"]["message"]


@pytest.mark.asyncio
async def test_tools_call_without_params_is_invalid_params() -> None:
    payload = (await make_dispatcher().dispatch(RpcRequest(id=1, method="tools/call"))).to_payload()

    assert payload["error"] == {"code": -32602, "message": "Missing params"}


@pytest.mark.asyncio
async def test_tools_call_without_name_is_invalid_params() -> None:
    request = RpcRequest(id=1, method="tools/call", params={"arguments": {"prompt": "x"}})
    payload = (await make_dispatcher().dispatch(request)).to_payload()

    assert payload["error"]["code"] == ErrorCode.INVALID_PARAMS


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["Generate_Image", "draw", ""])
async def test_unknown_tool_is_invalid_params_not_internal_error(name: str) -> None:
    client = StubClient()
    payload = (await make_dispatcher(client).dispatch(call(name=name))).to_payload()

    assert payload["error"]["code"] == ErrorCode.INVALID_PARAMS
    assert client.inputs == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "arguments",
    [{"prompt": ""}, {"prompt": "   "}, {"negative_prompt": "x"}, {"prompt": "x", "width": "wide"}],
)
async def test_bad_arguments_are_invalid_params(arguments: dict[str, Any]) -> None:
    client = StubClient()
    payload = (await make_dispatcher(client).dispatch(call(arguments=arguments))).to_payload()

    assert payload["error"]["code"] == ErrorCode.INVALID_PARAMS
    assert client.inputs == []


@pytest.mark.asyncio
async def test_generation_failure_is_an_error_flagged_result() -> None:
    client = StubClient(outcome=GenerationFailed("Generation failed: OOM"))
    payload = (await make_dispatcher(client).dispatch(call())).to_payload()

    assert "error" not in payload
    assert payload["result"]["isError"] is True
    assert "OOM" in payload["result"]["content"][0]["text"]


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_internal_error() -> None:
    client = StubClient(error=RuntimeError("boom"))
    payload = (await make_dispatcher(client).dispatch(call(request_id="x1"))).to_payload()

    assert payload["id"] == "x1"
    assert payload["error"]["code"] == ErrorCode.INTERNAL_ERROR
    assert payload["error"]["data"] == "boom"


def test_arguments_get_configured_defaults() -> None:
    settings = make_settings(DEFAULT_MODEL="ponyXL", DEFAULT_NEGATIVE_PROMPT="lowres")

    inp = parse_tool_arguments({"prompt": "a cat", "negative_prompt": None, "extra": 1}, settings)

    assert inp.negative_prompt == "lowres"
    assert inp.use_stable_diffusion_model == "ponyXL"
    assert (inp.width, inp.height, inp.num_outputs) == (1280, 960, 1)
    assert (inp.num_inference_steps, inp.guidance_scale, inp.seed) == (25, 7.5, -1)
    assert inp.sampler_name == "deis"


def test_arguments_must_be_an_object() -> None:
    with pytest.raises(InvalidToolArguments):
        parse_tool_arguments(["a cat"], make_settings())


def test_generation_input_is_immutable() -> None:
    inp = parse_tool_arguments({"prompt": "a cat"}, make_settings())
    with pytest.raises(ValidationError):
        inp.prompt = "a dog"  # type: ignore[misc]


def test_parse_request_reports_empty_and_malformed_bodies() -> None:
    with pytest.raises(RequestParseError) as empty:
        parse_request(b"  ")
    assert empty.value.response.to_payload()["error"]["code"] == ErrorCode.INVALID_REQUEST

    with pytest.raises(RequestParseError) as malformed:
        parse_request('{"jsonrpc": "2.0", "method": ')
    error = malformed.value.response.to_payload()["error"]
    assert error["code"] == ErrorCode.PARSE_ERROR
    assert error["message"] == "Parse error - Invalid JSON"

    with pytest.raises(RequestParseError) as no_method:
        parse_request(json.dumps({"jsonrpc": "2.0", "id": 9, "method": ""}))
    payload = no_method.value.response.to_payload()
    assert payload["id"] == 9
    assert payload["error"]["code"] == ErrorCode.INVALID_REQUEST


def test_parse_request_keeps_id_type() -> None:
    assert parse_request('{"jsonrpc":"2.0","id":5,"method":"initialize"}').id == 5
    assert parse_request('{"jsonrpc":"2.0","id":"5","method":"initialize"}').id == "5"


@pytest.mark.asyncio
async def test_tools_call_without_arguments_is_invalid_params() -> None:
    client = StubClient()
    request = RpcRequest(id=1, method="tools/call", params={"name": "generate_image"})
    payload = (await make_dispatcher(client).dispatch(request)).to_payload()

    assert payload["error"]["code"] == ErrorCode.INVALID_PARAMS
    assert client.inputs == []


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
async def test_non_finite_guidance_is_invalid_params(value: float) -> None:
    client = StubClient()
    arguments = {"prompt": "a cat", "guidance_scale": value}
    payload = (await make_dispatcher(client).dispatch(call(arguments=arguments))).to_payload()

    assert payload["error"]["code"] == ErrorCode.INVALID_PARAMS
    assert client.inputs == []


@pytest.mark.parametrize("token", ["NaN", "Infinity", "-Infinity"])
def test_parse_request_rejects_non_standard_constants(token: str) -> None:
    raw = (
        '{"jsonrpc":"2.0","id":1,"method":"tools/call","params":'
        '{"name":"generate_image","arguments":{"prompt":"a cat","guidance_scale":%s}}}' % token
    )
    with pytest.raises(RequestParseError) as rejected:
        parse_request(raw)

    error = rejected.value.response.to_payload()["error"]
    assert error["code"] == ErrorCode.PARSE_ERROR
    assert token in error["data"]
