"""
WebSocket handler for flight updates.

Each client gets its own engine subscription. A pump task forwards queued
messages to the socket while the receive loop answers client requests.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Set

from fastapi import WebSocket, WebSocketDisconnect

from backend.metrics import WEBSOCKET_CONNECTIONS, WEBSOCKET_MESSAGES_SENT
from contracts.constants import (
    WS_MESSAGE_TYPE_ERROR,
    WS_MESSAGE_TYPE_PONG,
    WS_REQUEST_FLIGHTS,
    WS_REQUEST_PING,
)
from simulation.broadcast import Subscription
from simulation.engine import FlightEngine

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections to the flight engine."""

    def __init__(self, engine: FlightEngine):
        self.engine = engine
        self.active_connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> Subscription:
        """Accept a connection; its subscription already holds the current snapshot."""
        await websocket.accept()
        self.active_connections.add(websocket)
        WEBSOCKET_CONNECTIONS.set(len(self.active_connections))
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")
        return self.engine.subscribe()

    def disconnect(self, websocket: WebSocket, subscription: Subscription):
        subscription.close()
        self.active_connections.discard(websocket)
        WEBSOCKET_CONNECTIONS.set(len(self.active_connections))
        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    async def _pump(self, websocket: WebSocket, subscription: Subscription):
        async for message in subscription:
            await websocket.send_json(message)
            WEBSOCKET_MESSAGES_SENT.labels(type=message.get("type", "unknown")).inc()

    async def _receive(self, websocket: WebSocket, subscription: Subscription):
        while True:
            text = await websocket.receive_text()
            try:
                request = json.loads(text)
                request_type = request.get("type") if isinstance(request, dict) else None
            except json.JSONDecodeError:
                request_type = None

            if request_type == WS_REQUEST_PING:
                subscription.deliver({
                    "type": WS_MESSAGE_TYPE_PONG,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                })
            elif request_type == WS_REQUEST_FLIGHTS:
                subscription.deliver(self.engine.snapshot_message().to_wire())
            else:
                logger.debug(f"Ignoring unsupported WebSocket request: {text[:100]}")
                subscription.deliver({
                    "type": WS_MESSAGE_TYPE_ERROR,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "message": "Unsupported request",
                })

    async def handle_client(self, websocket: WebSocket):
        """Serve one client until either side goes away."""
        subscription = await self.connect(websocket)
        pump = asyncio.create_task(self._pump(websocket, subscription))
        receive = asyncio.create_task(self._receive(websocket, subscription))

        try:
            done, _ = await asyncio.wait({pump, receive}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                error = task.exception()
                if error is not None and not isinstance(error, WebSocketDisconnect):
                    logger.error(f"WebSocket error: {error}")
        finally:
            for task in (pump, receive):
                task.cancel()
            await asyncio.gather(pump, receive, return_exceptions=True)
            self.disconnect(websocket, subscription)
