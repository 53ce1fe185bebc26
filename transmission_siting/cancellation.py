# cancellation.py
# cooperative cancellation shared between the caller and a running route
# computation. checked once per solver iteration and at every cost-grid
# chunk boundary.

import threading

from transmission_siting.exceptions import Cancelled


class CancellationToken:

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise Cancelled("route computation cancelled")


def check_cancelled(token):
    """raise Cancelled if a token was supplied and has been cancelled."""
    if token is not None:
        token.raise_if_cancelled()
