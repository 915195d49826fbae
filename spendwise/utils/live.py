"""
Live transport for notifications.

One ``ConnectionRegistry`` is created per application (``app.state.registry``)
and handed to whoever needs to emit; nothing here is module-global.
"""
import asyncio
import logging
import threading
from collections import defaultdict
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

from spendwise.core.config import settings

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Open WebSocket connections grouped into one room per user."""

    def __init__(self, emit_timeout: Optional[float] = None):
        self.emit_timeout = emit_timeout if emit_timeout is not None else settings.LIVE_EMIT_TIMEOUT
        self._rooms: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()
        self._pending: Set[asyncio.Task] = set()

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        # Joined before accept so the room is populated once the client sees the handshake
        self._loop = asyncio.get_running_loop()
        with self._lock:
            self._rooms[user_id].add(websocket)
        try:
            await websocket.accept()
        except Exception:
            self.disconnect(user_id, websocket)
            raise
        logger.info(f"User connected: {user_id}")

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        with self._lock:
            room = self._rooms.get(user_id)
            if room is not None:
                room.discard(websocket)
                if not room:
                    del self._rooms[user_id]
        logger.info(f"User disconnected: {user_id}")

    def connection_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._rooms.get(user_id, ()))

    def emit(self, user_id: str, event: str, payload: Any) -> int:
        """
        Send ``{"event": event, "data": payload}`` to every connection in the
        user's room. Returns how many connections got it. Delivery is best
        effort: failures are logged, never raised.
        """
        with self._lock:
            sockets = list(self._rooms.get(user_id, ()))
        if not sockets or self._loop is None:
            return 0

        message = {"event": event, "data": payload}
        delivered = 0
        for websocket in sockets:
            try:
                self._send(websocket, message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Live emit of {event} to user {user_id} failed: {e}")
        return delivered

    def _send(self, websocket: WebSocket, message: dict) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            # Already on the event loop thread; blocking here would deadlock it
            task = self._loop.create_task(websocket.send_json(message))
            self._pending.add(task)
            task.add_done_callback(self._send_done)
            return

        future = asyncio.run_coroutine_threadsafe(websocket.send_json(message), self._loop)
        future.result(timeout=self.emit_timeout)

    def _send_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Live emit failed: {error}")
