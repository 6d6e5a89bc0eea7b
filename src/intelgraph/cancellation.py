"""Cooperative cancellation for long-running graph operations."""

from __future__ import annotations

import threading

from intelgraph.exceptions import OperationCancelledError


class CancellationToken:
    """A flag checked between units of work (node expansions, re-embeds).

    Safe to trip from another thread, e.g. from the sync facade while the
    operation runs on its private loop.
    """

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise ``OperationCancelledError`` if :meth:`cancel` was called."""
        if self._event.is_set():
            msg = "Operation cancelled"
            if self._reason:
                msg = f"{msg}: {self._reason}"
            raise OperationCancelledError(msg)


def check(token: CancellationToken | None) -> None:
    """Shorthand for ``token.raise_if_cancelled()`` that accepts ``None``."""
    if token is not None:
        token.raise_if_cancelled()
