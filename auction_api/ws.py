"""
Live fan-out of auction events to websocket viewers.

Route handlers run in FastAPI's threadpool, so they never await a socket.
They hand events to ``AuctionBroadcaster.submit``, which queues them onto
the server loop; a single worker task delivers them per auction in order.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class AuctionBroadcaster:
    def __init__(self) -> None:
        self.viewers: defaultdict[str, set[WebSocket]] = defaultdict(set)
        self.loop: asyncio.AbstractEventLoop | None = None
        self.queue: asyncio.Queue | None = None
        self.worker: asyncio.Task | None = None

    def start(self) -> None:
        """Bind to the running loop and start the delivery worker."""
        self.loop = asyncio.get_running_loop()
        self.queue = asyncio.Queue()
        self.worker = self.loop.create_task(self._deliver())

    async def _deliver(self) -> None:
        while True:
            auction_id, message = await self.queue.get()
            await self.send(auction_id, message)

    async def subscribe(self, websocket: WebSocket, auction_id: str) -> None:
        await websocket.accept()
        self.viewers[auction_id].add(websocket)
        logger.debug(f"Viewer subscribed to auction {auction_id}")

    def unsubscribe(self, websocket: WebSocket, auction_id: str) -> None:
        viewers = self.viewers.get(auction_id)
        if viewers is None:
            return
        viewers.discard(websocket)
        if not viewers:
            del self.viewers[auction_id]

    def watched(self, auction_id: str) -> bool:
        return bool(self.viewers.get(auction_id))

    def submit(self, auction_id: str, event: str, payload: dict[str, Any]) -> None:
        """Queue an event from any thread. Dropped when nobody watches or before start."""
        if self.loop is None or self.queue is None or not self.watched(auction_id):
            return
        message = {"event": event, "payload": payload}
        asyncio.run_coroutine_threadsafe(self.queue.put((auction_id, message)), self.loop)

    async def send(self, auction_id: str, message: dict[str, Any]) -> None:
        for websocket in list(self.viewers.get(auction_id, ())):
            try:
                await websocket.send_json(message)
            except Exception:
                logger.debug(f"Dropping stale viewer of auction {auction_id}")
                self.unsubscribe(websocket, auction_id)
