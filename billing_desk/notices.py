import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class NoticeKind(str, Enum):
    TOAST = "toast"
    DIALOG = "dialog"


@dataclass
class Notice:
    kind: NoticeKind
    title: str
    description: str = ""
    destructive: bool = False


class Notifier:
    """Collects the toasts and dialogs an action produces, newest last."""

    def __init__(self):
        self.notices: list[Notice] = []

    def toast(self, title: str, description: str = "", destructive: bool = False) -> Notice:
        return self._push(Notice(NoticeKind.TOAST, title, description, destructive))

    def dialog(self, title: str, description: str = "") -> Notice:
        return self._push(Notice(NoticeKind.DIALOG, title, description))

    def failure(self, title: str, error: Exception, fallback: str) -> Notice:
        description = str(error) or fallback
        return self.toast(title, description, destructive=True)

    @property
    def last(self) -> Notice | None:
        return self.notices[-1] if self.notices else None

    def clear(self):
        self.notices.clear()

    def _push(self, notice: Notice) -> Notice:
        self.notices.append(notice)
        if notice.destructive:
            logger.warning("%s: %s", notice.title, notice.description)
        else:
            logger.info("%s %s: %s", notice.kind.value, notice.title, notice.description)
        return notice
