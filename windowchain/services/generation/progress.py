"""
Progress Tracking

Listener registry for reporting progress of long-running operations.
"""

from typing import Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

ProgressListener = Callable[[Dict[str, int]], None]


class ProgressTracker:
    """Holds the latest progress/total pair and notifies listeners on update."""

    def __init__(self):
        self._listeners: List[ProgressListener] = []
        self._progress = 0
        self._total = 0

    def on_progress(self, callback: ProgressListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unregisters it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def update(self, current: int, total: Optional[int] = None) -> None:
        """Record progress; total keeps its previous value when omitted."""
        self._progress = current
        if total is not None:
            self._total = total

        snapshot = self.progress
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error("progress_listener_failed", error=str(e))

    @property
    def progress(self) -> Dict[str, int]:
        return {"progress": self._progress, "total": self._total}
