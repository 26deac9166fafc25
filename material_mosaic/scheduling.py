"""Cooperative yield points with cancellation."""

from __future__ import annotations

import threading
import time

from material_mosaic.errors import GenerationCancelled


class Checkpoint:
    """Called at the end of every batch or chunk of work.

    Each call first checks the cancellation event, then sleeps for the
    requested pause so a long run hands control back to its host.
    """

    def __init__(self, cancel: threading.Event | None = None) -> None:
        self.cancel = cancel if cancel is not None else threading.Event()
        self.count = 0

    def check(self) -> None:
        if self.cancel.is_set():
            raise GenerationCancelled("Mosaic generation was cancelled")

    def __call__(self, pause_ms: float = 0.0) -> None:
        self.check()
        self.count += 1
        time.sleep(pause_ms / 1000.0)
        self.check()
