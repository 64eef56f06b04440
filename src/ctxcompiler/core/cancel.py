"""Cooperative cancellation for compilation runs."""

from __future__ import annotations

import threading

from ctxcompiler.core.errors import CompilationCancelled


class CancellationToken:
    """Thread-safe cancel flag checked between units of work.

    The module walk checks it per directory, collectors between files, the
    pipeline between phases and the path reconstructor between entry points.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self, phase: str) -> None:
        """Raise CompilationCancelled if cancellation was requested."""
        if self._event.is_set():
            raise CompilationCancelled.during(phase)
