from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ProgressRecord(BaseModel):
    """Schema for the persisted completion percentage of a project"""
    project_id: str
    percentage: int = Field(ge=0, le=100)
    calculated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProgressResponse(BaseModel):
    project_id: str
    percentage: int
