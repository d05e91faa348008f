from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ChangeEventType(str, Enum):
    """Row-level change kinds published by the Remote Store"""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """One row-level mutation notification"""
    table: str
    event_type: ChangeEventType
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None
    committed_at: datetime = Field(default_factory=datetime.utcnow)

    def matches(self, filters: Optional[Dict[str, Any]]) -> bool:
        """True if the new or old row satisfies every equality filter"""
        if not filters:
            return True
        for row in (self.new, self.old):
            if row and all(row.get(key) == value for key, value in filters.items()):
                return True
        return False


class RealtimeEventType(str, Enum):
    """Types of websocket messages on the change channel"""
    CHANGE = "change"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    ERROR = "error"
    PING = "ping"
    PONG = "pong"


class RealtimeMessage(BaseModel):
    """Server to client message"""
    event: RealtimeEventType
    data: Dict[str, Any]


class RealtimeCommand(BaseModel):
    """Client to server command"""
    command: str
    data: Dict[str, Any] = {}


class RealtimeSubscription(BaseModel):
    """Subscription request: a table scoped to one project"""
    table: str
    project_id: Optional[str] = None
