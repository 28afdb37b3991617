"""Progress sinks for long-running rebuild and detection passes."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


@runtime_checkable
class ProgressSink(Protocol):
    def start(self, total: int) -> None:
        ...

    def advance(self, step: int = 1) -> None:
        ...

    def finish(self) -> None:
        ...

    def write_line(self, text: str) -> None:
        ...


class NullProgress:
    def start(self, total: int) -> None:
        return None

    def advance(self, step: int = 1) -> None:
        return None

    def finish(self) -> None:
        return None

    def write_line(self, text: str) -> None:
        return None


class LoggingProgress:
    """Writes progress lines to a logger; advances are logged every ``every`` steps."""

    def __init__(self, log: Optional[logging.Logger] = None, every: int = 100) -> None:
        self.log = log or logger
        self.every = max(1, int(every))
        self.total = 0
        self.current = 0

    def start(self, total: int) -> None:
        self.total = int(total)
        self.current = 0

    def advance(self, step: int = 1) -> None:
        self.current += step
        if self.current % self.every == 0:
            self.log.info("Progress %d/%d", self.current, self.total)

    def finish(self) -> None:
        self.log.info("Progress done (%d/%d)", self.current, self.total)

    def write_line(self, text: str) -> None:
        self.log.info("%s", text)


class CallbackProgress:
    """Adapts a ``(current, total, message)`` callback to a progress sink."""

    def __init__(self, callback: ProgressCallback) -> None:
        self.callback = callback
        self.total = 0
        self.current = 0
        self.message = ""

    def start(self, total: int) -> None:
        self.total = int(total)
        self.current = 0
        self.callback(0, self.total, self.message)

    def advance(self, step: int = 1) -> None:
        self.current += step
        self.callback(self.current, self.total, self.message)

    def finish(self) -> None:
        self.callback(self.total, self.total, "done")

    def write_line(self, text: str) -> None:
        self.message = text
        self.callback(self.current, self.total, text)


def as_progress_sink(progress: object = None) -> ProgressSink:
    """Accept a sink, a ``(current, total, message)`` callback or None."""
    if progress is None:
        return NullProgress()
    if isinstance(progress, ProgressSink):
        return progress
    if callable(progress):
        return CallbackProgress(progress)
    raise TypeError(f"Unsupported progress sink: {type(progress).__name__}")
