from typing import Dict, Optional, Set
import asyncio
import json
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def project_room(project_id: int) -> str:
    return f"project:{project_id}"


def conversation_room(conversation_id: int) -> str:
    return f"conversation:{conversation_id}"


class ConnectionManager:
    """Room-scoped websocket fan-out.

    Route handlers run in the threadpool, so `emit` hands the send over to the
    event loop that accepted the sockets.
    """

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    async def connect(self, websocket: WebSocket, user_id: int):
        await websocket.accept()
        self.loop = asyncio.get_running_loop()
        self.join(websocket, user_room(user_id))

    def join(self, websocket: WebSocket, room: str):
        if room not in self.rooms:
            self.rooms[room] = set()
        self.rooms[room].add(websocket)

    def leave(self, websocket: WebSocket, room: str):
        if room in self.rooms:
            self.rooms[room].discard(websocket)
            if not self.rooms[room]:
                del self.rooms[room]

    def disconnect(self, websocket: WebSocket):
        for room in list(self.rooms):
            self.leave(websocket, room)

    async def broadcast(self, room: str, event: str, data: dict, exclude: Optional[WebSocket] = None):
        message = json.dumps({"event": event, "data": data}, default=str)
        for connection in list(self.rooms.get(room, ())):
            if connection is exclude:
                continue
            try:
                await connection.send_text(message)
            except Exception as exc:
                logger.warning("Dropping socket in %s: %s", room, exc)
                self.leave(connection, room)

    def emit(self, room: str, event: str, data: dict):
        if not self.rooms.get(room) or self.loop is None or self.loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(room, event, data), self.loop)


manager = ConnectionManager()
