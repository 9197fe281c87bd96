"""WebSocket endpoint: one frame in, zero or more frames out."""
import asyncio
import uuid
from typing import Iterable

from fastapi import APIRouter, Depends, WebSocket

from .engine import ChatEngine, get_engine
from .logging_config import configure_logging
from .router import Dispatch

router = APIRouter(tags=["chat"])
logger = configure_logging()


class ClientConnection:
    """Handle the registry stores for one accepted WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.id = uuid.uuid4().hex[:12]
        self.websocket = websocket

    async def send_text(self, payload: str) -> None:
        await self.websocket.send_text(payload)

    def __repr__(self) -> str:
        return f"ClientConnection({self.id})"


async def deliver(dispatches: Iterable[Dispatch]) -> int:
    """Send every dispatch; a failing target is logged and skipped. Returns frames sent."""
    sent = 0
    for dispatch in dispatches:
        payload = dispatch.event.to_json()
        for target in dispatch.targets:
            try:
                await target.send_text(payload)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "DELIVERY_FAIL connection=%s event=%s error=%r", target, dispatch.event.type, exc
                )
                continue
            sent += 1
    return sent


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, engine: ChatEngine = Depends(get_engine)):
    await websocket.accept()
    connection = ClientConnection(websocket)
    engine.router.connect(connection)
    logger.info("CONNECTION_OPEN connection=%s", connection)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            # bcrypt work in register/login must not stall other sockets
            await deliver(await asyncio.to_thread(engine.router.handle, connection, raw))
    finally:
        nickname = engine.router.disconnect(connection)
        logger.info("CONNECTION_CLOSED connection=%s nickname=%s", connection, nickname)
