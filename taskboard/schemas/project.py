from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class ProjectBase(BaseModel):
    """Base schema for project data"""
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None


class ProjectCreate(ProjectBase):
    created_by: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None


class ProjectResponse(ProjectBase):
    id: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectList(BaseModel):
    projects: List[ProjectResponse]


class ProjectDetails(ProjectResponse):
    """Cached project entry with its last known progress"""
    progress: Optional[int] = None
    last_fetched: float = 0.0
