from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Mapping, Set

from fastapi import WebSocket

from genspecs.utils.logging import get_logger

LOGGER = get_logger(__name__)


class WSManager:

    def __init__(self) -> None:
        self._connections: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, channel: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.setdefault(channel, set()).add(websocket)

    async def disconnect(self, channel: str, websocket: WebSocket) -> None:
        async with self._lock:
            conns = self._connections.get(channel)
            if not conns:
                return
            conns.discard(websocket)
            if not conns:
                self._connections.pop(channel, None)

    async def broadcast(self, channel: str, payload: Mapping[str, Any]) -> None:
        async with self._lock:
            connections = list(self._connections.get(channel, set()))

        if not connections:
            return

        message = json.dumps(payload, default=str)

        async def _send(connection: WebSocket) -> WebSocket | None:
            try:
                # One slow client must not stall the others
                await asyncio.wait_for(connection.send_text(message), timeout=2.0)
                return None
            except Exception as e:
                LOGGER.debug("Failed to send WS message to client: %s", e)
                return connection

        results = await asyncio.gather(*(_send(c) for c in connections), return_exceptions=True)
        dead_connections: List[WebSocket] = [
            c for c in results if c is not None and not isinstance(c, BaseException)
        ]

        if dead_connections:
            async with self._lock:
                conns = self._connections.get(channel)
                if conns:
                    for conn in dead_connections:
                        conns.discard(conn)
