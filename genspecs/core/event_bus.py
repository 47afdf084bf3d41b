from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from genspecs.core.ws_manager import WSManager
from genspecs.utils.logging import get_logger

LOGGER = get_logger(__name__)

GENERATION_CHANNEL = "generation"


class GenerationEvent(BaseModel):
    type: str = Field(default="event")
    timestamp: str
    source: str
    level: str = Field(default="info")
    msg: str
    data: Dict[str, Any] = Field(default_factory=dict)


class EventBus:
    """Pushes pipeline events to every client subscribed to the generation socket."""

    def __init__(self, ws_manager: Optional[WSManager] = None) -> None:
        self.ws_manager = ws_manager or WSManager()

    async def emit(
        self,
        msg: str,
        *,
        source: str,
        level: str = "info",
        data: Optional[Dict[str, Any]] = None,
        event_type: str = "event",
    ) -> None:
        payload = GenerationEvent(
            type=event_type,
            timestamp=datetime.now(timezone.utc).isoformat(),
            source=source,
            level=level,
            msg=msg,
            data=data or {},
        )
        # WS best-effort
        try:
            await self.ws_manager.broadcast(GENERATION_CHANNEL, payload.model_dump())
        except Exception:
            LOGGER.exception("Failed to broadcast generation event")
