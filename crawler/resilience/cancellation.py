"""
Cooperative cancellation for crawl runs.
"""

import threading


class CancellationToken:
    """
    Stop signal checked by workers between pages or URLs.

    A token is created fresh for every run and never reset, so a stop
    request from a previous run cannot leak into the next one.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """
        Sleep for up to ``timeout`` seconds, waking early on cancellation.

        Returns:
            True if the token was cancelled
        """
        if timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)
