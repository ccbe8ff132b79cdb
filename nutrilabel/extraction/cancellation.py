"""
Cooperative cancellation shared between the event loop and engine threads.
"""

import threading
from typing import Optional

from ..domain.exceptions import ExtractionCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag.

    Set by the orchestrator (cancel, timeout) and polled by the recognition
    session running in a worker thread.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: Optional[str] = None) -> None:
        if self._event.is_set():
            raise ExtractionCancelledError(stage)

    def wait(self, timeout: float) -> bool:
        """Sleeps up to `timeout` seconds; returns True as soon as the token is cancelled."""
        return self._event.wait(timeout)
