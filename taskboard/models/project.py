from datetime import datetime
import uuid

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship

from taskboard.db.base import Base


def new_id() -> str:
    return str(uuid.uuid4())


class Project(Base):
    """Проект: доска со своим набором статусов и задач"""

    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    statuses = relationship("Status", back_populates="project", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")
    progress = relationship("ProjectProgress", back_populates="project", cascade="all, delete-orphan")


class ProjectProgress(Base):
    """Процент завершения проекта, одна строка на проект"""

    __tablename__ = "project_progress"

    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True)
    percentage = Column(Integer, nullable=False, default=0)
    calculated_at = Column(DateTime, nullable=True)

    project = relationship("Project", back_populates="progress")
