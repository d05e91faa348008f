import logging
import sys
import json
import inspect
import datetime
from pathlib import Path
from functools import wraps
import traceback

# Логи пишутся рядом с модулем
log_dir = Path(__file__).parent
log_dir.mkdir(exist_ok=True)

# Цвета для консоли
BLUE = '\033[94m'
GREEN = '\033[92m'
YELLOW = '\033[93m'
RED = '\033[91m'
PURPLE = '\033[95m'
CYAN = '\033[96m'
END = '\033[0m'

RESULT_PREVIEW_LIMIT = 1000


def format_object(obj):
    """Render snapshots, rows and plain containers for the debug log"""
    if hasattr(obj, "model_dump"):
        return json.dumps(obj.model_dump(), indent=2, ensure_ascii=False, default=str)
    if isinstance(obj, (list, dict, tuple, set)):
        try:
            return json.dumps(obj, indent=2, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(obj)
    if hasattr(obj, '__dict__'):
        return str(obj.__dict__)
    return str(obj)


class DebugLogger:
    """Расширенный логгер для дебага с информацией о вызывающем коде и цветным выводом"""

    def __init__(self, name="taskboard.debug", level=logging.DEBUG):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.logger.propagate = False

        if self.logger.handlers:
            self.logger.handlers.clear()

        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        )

        file_handler = logging.FileHandler(log_dir / "debug.log", encoding='utf-8')
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)

        self.logger.addHandler(file_handler)
        self.logger.addHandler(console_handler)

    def _caller(self, depth=2):
        frame = inspect.currentframe()
        for _ in range(depth):
            frame = frame.f_back
        filename = frame.f_code.co_filename
        # Относительный путь внутри пакета
        if "taskboard" in filename:
            filename = filename[filename.index("taskboard"):]
        return f"{BLUE}[{filename}:{frame.f_lineno} - {frame.f_code.co_name}]{END}"

    def debug(self, message, *args, **kwargs):
        self.logger.debug(f"{self._caller()} {message}", *args, **kwargs)

    def info(self, message, *args, **kwargs):
        self.logger.info(f"{GREEN}{message}{END}", *args, **kwargs)

    def warning(self, message, *args, **kwargs):
        self.logger.warning(f"{YELLOW}{message}{END}", *args, **kwargs)

    def error(self, message, *args, **kwargs):
        """Лог ошибок, к сообщению добавляется активный трейс"""
        trace = traceback.format_exc()
        if trace and trace != 'NoneType: None\n':
            message = f"{message}\n{RED}Traceback:{END}\n{trace}"
        self.logger.error(f"{RED}{message}{END}", *args, **kwargs)

    def start_func(self, func_name, params=None):
        params_str = f" с параметрами: {format_object(params)}" if params else ""
        self.logger.debug(f"{PURPLE}Начало выполнения {func_name}{END}{params_str}")

    def end_func(self, func_name, result=None, execution_time=None):
        result_str = ""
        if result is not None:
            formatted = format_object(result)
            result_str = f", результат: {formatted[:RESULT_PREVIEW_LIMIT]}"
            if len(formatted) > RESULT_PREVIEW_LIMIT:
                result_str += "... [обрезано]"

        time_str = f", время выполнения: {execution_time:.4f}с" if execution_time else ""
        self.logger.debug(f"{PURPLE}Окончание выполнения {func_name}{END}{result_str}{time_str}")

    def log_exception(self, message="Произошло исключение"):
        exc_type, exc_value, _ = sys.exc_info()
        if exc_type:
            self.error(f"{message}: {exc_type.__name__}: {exc_value}")
        else:
            self.error(message)

    def log_request(self, request, extra_info=None):
        """Логирование входящего HTTP запроса"""
        method = getattr(request, 'method', 'UNKNOWN')
        url = str(getattr(request, 'url', 'UNKNOWN'))
        client = getattr(request, 'client', None)
        client_host = client.host if client else "unknown"

        info = f"{CYAN}HTTP запрос:{END} {method} {url} {CYAN}клиент:{END} {client_host}"
        if extra_info:
            info += f"\n{CYAN}Дополнительно:{END} {extra_info}"
        self.logger.debug(info)

    def log_response(self, response, process_time=None):
        status_code = getattr(response, 'status_code', 0)
        color = GREEN if 200 <= status_code < 400 else YELLOW if 400 <= status_code < 500 else RED

        info = f"{CYAN}HTTP ответ:{END} {color}Статус {status_code}{END}"
        if process_time is not None:
            info += f" {CYAN}за{END} {process_time:.3f}с"
        self.logger.debug(info)


def _collect_args(func, args, kwargs):
    func_args = dict(zip(inspect.getfullargspec(func).args, args))
    func_args.update(kwargs)
    # self/cls и сессии в лог не попадают
    for skipped in ("self", "cls", "db", "session"):
        func_args.pop(skipped, None)
    return func_args


def log_function(logger=None):
    """Декоратор для логирования вызова функции (sync и async)"""
    if logger is None:
        logger = debug_logger

    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = datetime.datetime.now()
                logger.start_func(func.__qualname__, _collect_args(func, args, kwargs))
                try:
                    result = await func(*args, **kwargs)
                except Exception:
                    logger.log_exception(f"Ошибка в функции {func.__qualname__}")
                    raise
                execution_time = (datetime.datetime.now() - start_time).total_seconds()
                logger.end_func(func.__qualname__, result, execution_time)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = datetime.datetime.now()
            logger.start_func(func.__qualname__, _collect_args(func, args, kwargs))
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.log_exception(f"Ошибка в функции {func.__qualname__}")
                raise
            execution_time = (datetime.datetime.now() - start_time).total_seconds()
            logger.end_func(func.__qualname__, result, execution_time)
            return result

        return wrapper

    return decorator


debug_logger = DebugLogger()
