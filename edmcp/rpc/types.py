"""JSON-RPC envelope and MCP result models."""

from __future__ import annotations

import enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr

RequestId = Union[StrictStr, StrictInt, StrictFloat, None]


class ErrorCode(enum.IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class RpcRequest(BaseModel):
    jsonrpc: str = "2.0"
    id: RequestId = None
    method: str = Field(min_length=1)
    params: Optional[Any] = None


class RpcError(BaseModel):
    code: int
    message: str
    data: Optional[Any] = None


class RpcResponse(BaseModel):
    """Exactly one of `result` / `error` is set."""

    jsonrpc: str = "2.0"
    id: RequestId = None
    result: Optional[Any] = None
    error: Optional[RpcError] = None

    @classmethod
    def success(cls, request_id: Any, result: Any) -> RpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls,
        request_id: Any,
        code: ErrorCode,
        message: str,
        data: Any = None,
    ) -> RpcResponse:
        return cls(id=request_id, error=RpcError(code=int(code), message=message, data=data))

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.model_dump(exclude_none=True)
        else:
            payload["result"] = self.result if self.result is not None else {}
        return payload


# ---------------------------------------------------------------------------
# MCP results
# ---------------------------------------------------------------------------

class ServerInfo(BaseModel):
    name: str
    version: str


class InitializeResult(BaseModel):
    protocolVersion: str
    capabilities: dict[str, Any] = Field(default_factory=lambda: {"tools": {}})
    serverInfo: ServerInfo


class Tool(BaseModel):
    name: str
    description: str
    inputSchema: dict[str, Any]


class ToolListResult(BaseModel):
    tools: list[Tool]


class ToolCallParams(BaseModel):
    name: StrictStr
    arguments: dict[str, Any]


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    type: Literal["image"] = "image"
    data: str = Field(description="Raw base64-encoded image bytes")
    mimeType: str = Field(default="image/png", description="MIME type, e.g. 'image/png'")


class ToolCallResult(BaseModel):
    content: list[Union[TextContent, ImageContent]]
    isError: bool = False
