"""HTTP routes for the MCP endpoint.

`POST /mcp` carries one JSON-RPC request per HTTP request (used by LM Studio).
The WebSocket variant lives at `/mcp/ws` and is handled by WebSocketManager.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from edmcp.common.system_logger import get_logger
from edmcp.config import APP_NAME, APP_VERSION
from edmcp.rpc.dispatcher import RequestParseError, parse_request
from edmcp.rpc.types import ErrorCode, RpcResponse

router = APIRouter()
logger = get_logger()


@router.post("/mcp")
async def handle_http_mcp(request: Request) -> JSONResponse:
    try:
        body = await request.body()
        logger.debug(f"Received request body: {body[:500]!r}")

        try:
            rpc_request = parse_request(body)
        except RequestParseError as e:
            logger.warning(f"Rejected MCP request: {e}")
            return JSONResponse(status_code=400, content=e.response.to_payload())

        response = await request.app.state.dispatcher.dispatch(rpc_request)
        return JSONResponse(content=response.to_payload())
    except Exception as e:
        logger.error(f"Unhandled exception in handle_http_mcp: {type(e).__name__}: {e}", exc_info=True)
        response = RpcResponse.failure(None, ErrorCode.INTERNAL_ERROR, "Internal error", data=str(e))
        return JSONResponse(status_code=500, content=response.to_payload())


@router.get("/mcp")
async def mcp_info() -> dict:
    return {"name": APP_NAME, "version": APP_VERSION, "protocols": ["json-rpc"]}


@router.websocket("/mcp/ws")
async def handle_mcp_websocket(websocket: WebSocket) -> None:
    manager = websocket.app.state.websocket_manager
    conn = await manager.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await manager.handle_message(conn, raw)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await manager.disconnect(websocket)


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}
