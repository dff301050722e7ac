"""WebSocket connection manager: one JSON-RPC request per text message."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

from edmcp.rpc.dispatcher import RequestDispatcher, RequestParseError, parse_request
from edmcp.rpc.types import ErrorCode, RpcRequest, RpcResponse

logger = logging.getLogger(__name__)


class Connection:
    __slots__ = ("websocket", "_running_tasks")

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self._running_tasks: set[asyncio.Task] = set()

    def track(self, task: asyncio.Task) -> None:
        self._running_tasks.add(task)
        task.add_done_callback(self._running_tasks.discard)

    def cancel_all(self) -> int:
        count = 0
        for task in list(self._running_tasks):
            if not task.done():
                task.cancel()
                count += 1
        self._running_tasks.clear()
        return count


class WebSocketManager:
    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher
        self.connections: dict[int, Connection] = {}

    async def connect(self, websocket: WebSocket) -> Connection:
        await websocket.accept()
        conn = Connection(websocket)
        self.connections[id(websocket)] = conn
        logger.info("WebSocket connected: %s", id(websocket))
        return conn

    async def disconnect(self, websocket: WebSocket) -> None:
        conn = self.connections.pop(id(websocket), None)
        if conn:
            # Abandons in-flight poll loops; the backend job still runs to completion
            cancelled = conn.cancel_all()
            logger.info("WebSocket disconnected: %s (cancelled %d request(s))", id(websocket), cancelled)

    async def handle_message(self, conn: Connection, raw: str) -> None:
        """Parse an incoming message and dispatch it concurrently."""
        try:
            request = parse_request(raw)
        except RequestParseError as e:
            await self._send(conn, e.response.to_payload())
            return

        task = asyncio.create_task(self._run_request(conn, request))
        conn.track(task)

    async def _run_request(self, conn: Connection, request: RpcRequest) -> None:
        try:
            response = await self._dispatcher.dispatch(request)
        except asyncio.CancelledError:
            logger.info("Request %r cancelled", request.id)
            raise
        except Exception as e:
            logger.exception("Unexpected error handling %s", request.method)
            response = RpcResponse.failure(request.id, ErrorCode.INTERNAL_ERROR, "Internal error", data=str(e))
        await self._send(conn, response.to_payload())

    async def _send(self, conn: Connection, data: dict[str, Any]) -> None:
        try:
            await conn.websocket.send_json(data)
        except Exception:
            logger.debug("Could not send to WebSocket %s", id(conn.websocket), exc_info=True)
