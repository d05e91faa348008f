from taskboard.logs.debug_log import debug_logger, log_function
from taskboard.logs.server_log import api_logger

__all__ = ["debug_logger", "log_function", "api_logger"]
