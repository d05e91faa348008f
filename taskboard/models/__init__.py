from taskboard.models.project import Project, ProjectProgress
from taskboard.models.status import Status
from taskboard.models.task import Task, TaskPriority
