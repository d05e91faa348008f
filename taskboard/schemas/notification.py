from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ToastVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Toast(BaseModel):
    """Transient user-facing notification"""
    title: str
    description: Optional[str] = None
    variant: ToastVariant = ToastVariant.DEFAULT
    created_at: datetime = Field(default_factory=datetime.utcnow)
