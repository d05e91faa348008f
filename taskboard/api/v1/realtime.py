import json
from typing import Callable, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from taskboard.api.dependencies.store import get_store
from taskboard.core.exceptions import UnknownTableError
from taskboard.schemas.realtime import (
    ChangeEvent,
    RealtimeCommand,
    RealtimeEventType,
    RealtimeMessage,
    RealtimeSubscription,
)
from taskboard.services.remote_store import RemoteStore
from taskboard.logs.server_log import api_logger

router = APIRouter(tags=["realtime"])

SubscriptionKey = Tuple[str, Optional[str]]


class RealtimeConnection:
    """Change-feed subscriptions owned by one websocket client"""

    def __init__(self, websocket: WebSocket, store: RemoteStore):
        self.websocket = websocket
        self.store = store
        self.subscriptions: Dict[SubscriptionKey, Callable[[], None]] = {}

    async def send(self, event: RealtimeEventType, data: dict):
        message = RealtimeMessage(event=event, data=data)
        await self.websocket.send_text(message.model_dump_json())

    async def send_error(self, message: str, code: int = 400):
        await self.send(RealtimeEventType.ERROR, {"message": message, "code": code})

    async def forward(self, event: ChangeEvent):
        await self.send(RealtimeEventType.CHANGE, json.loads(event.model_dump_json()))

    def subscribe(self, subscription: RealtimeSubscription) -> bool:
        key = (subscription.table, subscription.project_id)
        if key in self.subscriptions:
            return False
        filters = {"project_id": subscription.project_id} if subscription.project_id else None
        self.subscriptions[key] = self.store.subscribe(subscription.table, filters, self.forward)
        return True

    def unsubscribe(self, subscription: RealtimeSubscription) -> bool:
        unsubscribe = self.subscriptions.pop((subscription.table, subscription.project_id), None)
        if unsubscribe is None:
            return False
        unsubscribe()
        return True

    def close(self):
        for unsubscribe in self.subscriptions.values():
            unsubscribe()
        self.subscriptions.clear()

    async def handle(self, raw: str):
        """Process one client message"""
        try:
            command = RealtimeCommand.model_validate_json(raw)
        except ValidationError:
            await self.send_error("Invalid message format")
            return

        if command.command == "ping":
            await self.send(RealtimeEventType.PONG, {})
            return

        if command.command not in ("subscribe", "unsubscribe"):
            await self.send_error(f"Unknown command: {command.command}")
            api_logger.warning(f"Realtime: unknown command '{command.command}'")
            return

        try:
            subscription = RealtimeSubscription.model_validate(command.data)
        except ValidationError:
            await self.send_error("Missing table")
            return

        data = subscription.model_dump()
        if command.command == "subscribe":
            try:
                self.subscribe(subscription)
            except UnknownTableError as e:
                await self.send_error(str(e))
                return
            await self.send(RealtimeEventType.SUBSCRIBED, data)
        else:
            self.unsubscribe(subscription)
            await self.send(RealtimeEventType.UNSUBSCRIBED, data)


@router.websocket("/ws/changes")
async def changes_endpoint(websocket: WebSocket, store: RemoteStore = Depends(get_store)):
    """
    Realtime change feed.

    Commands from client:
    - {"command": "subscribe", "data": {"table": "tasks", "project_id": "..."}}
    - {"command": "unsubscribe", "data": {"table": "tasks", "project_id": "..."}}
    - {"command": "ping", "data": {}}
    """
    client_host = websocket.client.host if websocket.client else "unknown"
    await websocket.accept()
    api_logger.info(f"Realtime: client connected from {client_host}")

    connection = RealtimeConnection(websocket, store)
    await connection.send(RealtimeEventType.PING, {"message": "Connected to the change feed"})
    try:
        while True:
            await connection.handle(await websocket.receive_text())
    except WebSocketDisconnect:
        api_logger.info(f"Realtime: client {client_host} disconnected")
    finally:
        connection.close()
