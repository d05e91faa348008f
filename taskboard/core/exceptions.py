from typing import Optional


class TaskboardError(Exception):
    """Base error for the board synchronization layer"""


class StoreError(TaskboardError):
    """A Remote Store operation failed"""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class UnknownTableError(StoreError):
    """The table name is not mapped to a model"""


class RecordNotFoundError(StoreError):
    """Point mutation targeted a row that does not exist"""

    def __init__(self, table: str, record_id: str):
        super().__init__(f"{table} record {record_id} not found", table=table)
        self.record_id = record_id


class FetchError(TaskboardError):
    """Board snapshot could not be loaded; the previous snapshot is kept"""

    def __init__(self, project_id: str, cause: Optional[Exception] = None):
        super().__init__(f"Failed to load board for project {project_id}: {cause}")
        self.project_id = project_id
        self.cause = cause


class CommitError(TaskboardError):
    """A drag commit was rejected by the Remote Store"""

    def __init__(self, card_id: str, column_id: str, cause: Optional[Exception] = None):
        super().__init__(f"Failed to move task {card_id} to status {column_id}: {cause}")
        self.card_id = card_id
        self.column_id = column_id
        self.cause = cause


class NotFoundError(CommitError):
    """The dragged card was deleted concurrently"""


class ProgressWriteError(TaskboardError):
    """Persisting the completion percentage failed (never surfaced to the user)"""

    def __init__(self, project_id: str, percentage: int, cause: Optional[Exception] = None):
        super().__init__(f"Failed to store progress {percentage}% for project {project_id}: {cause}")
        self.project_id = project_id
        self.percentage = percentage
        self.cause = cause


class InvalidReferenceError(StoreError):
    """A row references a record of another project"""
