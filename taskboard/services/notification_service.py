from collections import deque
from typing import Callable, Deque, List, Optional

from taskboard.schemas.notification import Toast, ToastVariant
from taskboard.logs.server_log import api_logger

ToastListener = Callable[[Toast], None]


class Notifier:
    """Transient user notifications (toasts) with observer registration"""

    def __init__(self, history_size: int = 50):
        self.history: Deque[Toast] = deque(maxlen=history_size)
        self._listeners: List[ToastListener] = []

    def add_listener(self, listener: ToastListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def toast(self, title: str, description: Optional[str] = None, variant: ToastVariant = ToastVariant.DEFAULT) -> Toast:
        toast = Toast(title=title, description=description, variant=variant)
        self.history.append(toast)
        api_logger.info(f"Toast [{variant.value}]: {title}")
        for listener in list(self._listeners):
            try:
                listener(toast)
            except Exception as e:
                api_logger.error(f"Toast listener failed: {str(e)}")
        return toast

    def success(self, title: str, description: Optional[str] = None) -> Toast:
        return self.toast(title, description)

    def failure(self, title: str, description: Optional[str] = None) -> Toast:
        return self.toast(title, description, ToastVariant.DESTRUCTIVE)
