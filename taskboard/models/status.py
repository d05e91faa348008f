from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.orm import relationship

from taskboard.db.base import Base
from taskboard.models.project import new_id


class Status(Base):
    """Колонка доски (этап workflow)"""

    __tablename__ = "statuses"

    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    display_order = Column(Integer, nullable=False, default=0)  # Порядок слева направо

    project = relationship("Project", back_populates="statuses")
    tasks = relationship("Task", back_populates="status", cascade="all, delete-orphan")
