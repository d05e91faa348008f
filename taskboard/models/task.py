from datetime import datetime
import enum

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from taskboard.db.base import Base
from taskboard.models.project import new_id


class TaskPriority(str, enum.Enum):
    MUST = "Must"
    MEDIUM = "Medium"
    TINY = "Tiny"
    HUGE = "Huge"


class Task(Base):
    """Карточка задачи; status_id меняется при перетаскивании"""

    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    status_id = Column(String(36), ForeignKey("statuses.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(
        Enum(TaskPriority, values_callable=lambda enum_cls: [member.value for member in enum_cls], name="task_priority"),
        nullable=False,
        default=TaskPriority.MEDIUM,
    )
    assigned_to = Column(String(36), nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="tasks")
    status = relationship("Status", back_populates="tasks")
