"""
modules/sales/jobs.py

Run store work off the UI thread. Results must travel back through a Qt
signal on a QObject living in the UI thread; never touch UI state from the
worker itself.
"""
from __future__ import annotations

from typing import Callable, Optional

from PySide6.QtCore import QRunnable, QThreadPool, Slot


class JobRunnable(QRunnable):
    """
    Thin QRunnable wrapper that executes a callable.
    """
    def __init__(self, work: Callable[[], None]) -> None:
        super().__init__()
        self.setAutoDelete(True)
        self._work = work

    @Slot()
    def run(self) -> None:  # type: ignore[override]
        self._work()


def start_job(work: Callable[[], None], pool: Optional[QThreadPool] = None) -> None:
    (pool or QThreadPool.globalInstance()).start(JobRunnable(work))


def fmt_err(msg: str, exc: BaseException | None = None) -> str:
    if exc is None:
        return msg
    return f"{msg}\n\n{exc.__class__.__name__}: {exc}"
