from __future__ import annotations

import json
from datetime import datetime, timezone

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from genspecs.core.event_bus import GENERATION_CHANNEL

router = APIRouter()


@router.websocket("/ws/generation")
async def generation_socket(websocket: WebSocket) -> None:
    bus = websocket.app.state.event_bus
    pipeline = websocket.app.state.pipeline
    await bus.ws_manager.connect(GENERATION_CHANNEL, websocket)
    # Late joiners get the current state straight away
    await websocket.send_json({
        "type": "state",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": "system",
        "level": "info",
        "msg": "WebSocket connected",
        "data": pipeline.snapshot().model_dump(mode="json", by_alias=True),
    })
    try:
        while True:
            payload = await websocket.receive_text()
            try:
                data = json.loads(payload)
            except json.JSONDecodeError:
                continue
            if not isinstance(data, dict):
                continue
            if data.get("type") == "command" and data.get("command") == "ping":
                await websocket.send_json({"type": "info", "msg": "pong"})
    except WebSocketDisconnect:
        await bus.ws_manager.disconnect(GENERATION_CHANNEL, websocket)
