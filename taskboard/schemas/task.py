from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from taskboard.models.task import TaskPriority


class TaskCreate(BaseModel):
    """Schema for task creation inside a status column"""
    title: str
    status_id: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None


class TaskUpdate(BaseModel):
    """Schema for task edit; only provided fields change"""
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status_id: Optional[str] = None
    assigned_to: Optional[str] = None


class TaskMove(BaseModel):
    """Schema for moving a task to another status column"""
    status_id: str


class TaskResponse(BaseModel):
    id: str
    project_id: str
    status_id: str
    title: str
    description: Optional[str] = None
    priority: TaskPriority
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
