"""Request dispatcher: routes JSON-RPC methods to their handlers."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Coroutine

from pydantic import ValidationError

from edmcp.config import APP_NAME, APP_VERSION, PROTOCOL_VERSION, Settings
from edmcp.generation.client import GenerationClient
from edmcp.rpc.types import (
    ErrorCode,
    InitializeResult,
    RpcRequest,
    RpcResponse,
    ServerInfo,
    ToolCallParams,
    ToolCallResult,
    ToolListResult,
)
from edmcp.tools.generate_image import InvalidToolArguments, tool_generate_image
from edmcp.tools.tool_schemas import GENERATE_IMAGE, get_tool_catalog

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Coroutine[Any, Any, ToolCallResult]]

TOOL_HANDLERS: dict[str, ToolHandler] = {
    GENERATE_IMAGE: tool_generate_image,
}

BODY_PREVIEW_CHARS = 100


class RequestParseError(Exception):
    """Raised when a raw message cannot become an RpcRequest."""

    def __init__(self, response: RpcResponse) -> None:
        super().__init__(response.error.message if response.error else "")
        self.response = response


def _reject_constant(token: str) -> Any:
    # NaN, Infinity and -Infinity are not valid JSON
    raise ValueError(f"Non-standard JSON constant: {token}")


def parse_request(raw: str | bytes) -> RpcRequest:
    """Decode one JSON-RPC message, raising RequestParseError with the error response."""
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    if not text.strip():
        raise RequestParseError(
            RpcResponse.failure(None, ErrorCode.INVALID_REQUEST, "Invalid Request: empty body")
        )

    try:
        body = json.loads(text, parse_constant=_reject_constant)
    except ValueError as e:
        preview = text if len(text) <= BODY_PREVIEW_CHARS else text[:BODY_PREVIEW_CHARS] + "..."
        raise RequestParseError(
            RpcResponse.failure(
                None,
                ErrorCode.PARSE_ERROR,
                "Parse error - Invalid JSON",
                data=f"Error: {e}. Body received: {preview}",
            )
        ) from e

    try:
        return RpcRequest.model_validate(body)
    except ValidationError as e:
        request_id = body.get("id") if isinstance(body, dict) else None
        if not isinstance(request_id, (str, int, float)) or isinstance(request_id, bool):
            request_id = None
        raise RequestParseError(
            RpcResponse.failure(request_id, ErrorCode.INVALID_REQUEST, "Invalid Request", data=str(e))
        ) from e


class RequestDispatcher:
    """Produces exactly one RpcResponse, carrying the request id, for every request."""

    def __init__(self, settings: Settings, client: GenerationClient) -> None:
        self._settings = settings
        self._client = client
        self._methods: dict[str, Callable[[RpcRequest], Coroutine[Any, Any, RpcResponse]]] = {
            "initialize": self._initialize,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
        }

    async def dispatch(self, request: RpcRequest) -> RpcResponse:
        handler = self._methods.get(request.method)
        if handler is None:
            return RpcResponse.failure(
                request.id, ErrorCode.METHOD_NOT_FOUND, f"Method not found: {request.method}"
            )

        logger.info("Dispatching %s (id=%r)", request.method, request.id)
        try:
            return await handler(request)
        except Exception as e:
            logger.exception("Method %s failed", request.method)
            return RpcResponse.failure(request.id, ErrorCode.INTERNAL_ERROR, "Internal error", data=str(e))

    async def _initialize(self, request: RpcRequest) -> RpcResponse:
        result = InitializeResult(
            protocolVersion=PROTOCOL_VERSION,
            serverInfo=ServerInfo(name=APP_NAME, version=APP_VERSION),
        )
        return RpcResponse.success(request.id, result.model_dump())

    async def _list_tools(self, request: RpcRequest) -> RpcResponse:
        result = ToolListResult(tools=get_tool_catalog(self._settings))
        return RpcResponse.success(request.id, result.model_dump())

    async def _call_tool(self, request: RpcRequest) -> RpcResponse:
        if request.params is None:
            return RpcResponse.failure(request.id, ErrorCode.INVALID_PARAMS, "Missing params")

        try:
            params = ToolCallParams.model_validate(request.params)
        except ValidationError as e:
            return RpcResponse.failure(
                request.id, ErrorCode.INVALID_PARAMS, "Invalid params: expected name and arguments", data=str(e)
            )

        handler = TOOL_HANDLERS.get(params.name)
        if handler is None:
            return RpcResponse.failure(request.id, ErrorCode.INVALID_PARAMS, f"Unknown tool: {params.name}")

        try:
            result = await handler(params.arguments, settings=self._settings, client=self._client)
        except InvalidToolArguments as e:
            logger.warning("Invalid parameters for tool %s: %s", params.name, e.detail or e)
            return RpcResponse.failure(request.id, ErrorCode.INVALID_PARAMS, str(e), data=e.detail)

        return RpcResponse.success(request.id, result.model_dump())
