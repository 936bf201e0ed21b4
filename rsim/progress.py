"""In-process progress channel for multi-trial runs."""

from __future__ import annotations

from dataclasses import dataclass
import threading
import time
from typing import Callable


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    run_id: str
    completed: int
    target: int
    cancelled: bool = False
    updated_at: float = 0.0


Listener = Callable[[ProgressUpdate], None]


class ProgressChannel:
    """Fan-out of progress updates; a new subscriber first gets the latest update for its run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest: dict[str, ProgressUpdate] = {}
        self._listeners: list[tuple[str, Listener]] = []

    def publish(self, update: ProgressUpdate) -> None:
        with self._lock:
            self._latest[update.run_id] = update
            listeners = [listener for run_id, listener in self._listeners if run_id == update.run_id]
        for listener in listeners:
            listener(update)

    def subscribe(self, run_id: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``run_id``; returns the unsubscribe callable."""
        entry = (run_id, listener)
        with self._lock:
            self._listeners.append(entry)
            latest = self._latest.get(run_id)
        if latest is not None:
            listener(latest)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def latest(self, run_id: str) -> ProgressUpdate | None:
        with self._lock:
            return self._latest.get(run_id)

    def clear(self, run_id: str | None = None) -> None:
        with self._lock:
            if run_id is None:
                self._latest.clear()
            else:
                self._latest.pop(run_id, None)


def make_update(run_id: str, completed: int, target: int, cancelled: bool = False) -> ProgressUpdate:
    return ProgressUpdate(run_id=run_id, completed=completed, target=target, cancelled=cancelled, updated_at=time.time())
