# Import all models here so metadata.create_all sees every table
from taskboard.db.base import Base
from taskboard.models.project import Project, ProjectProgress
from taskboard.models.status import Status
from taskboard.models.task import Task, TaskPriority
