"""Mutual exclusion for state-changing marketplace workflows."""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from .exceptions import OperationInProgress

logger = logging.getLogger(__name__)


class OperationGuard:
    """Allow at most one mutation workflow in flight.

    Acquisition never blocks: a second caller is rejected with
    :class:`OperationInProgress` so it cannot queue a duplicate transaction.
    ``acquire`` hands out a token and only the matching ``release`` frees the
    guard, so a stale holder can never release a newer workflow's hold.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)
        self._token: int | None = None
        self._operation: str | None = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def operation(self) -> str | None:
        return self._operation

    def acquire(self, operation: str) -> int:
        if not self._lock.acquire(blocking=False):
            raise OperationInProgress(
                f"Cannot start {operation}: {self._operation} is still in progress",
                operation=self._operation,
            )
        self._token = next(self._tokens)
        self._operation = operation
        logger.debug("Operation guard acquired by %s", operation)
        return self._token

    def release(self, token: int) -> None:
        if token != self._token:
            logger.debug("Ignoring release with stale guard token %s", token)
            return
        logger.debug("Operation guard released by %s", self._operation)
        self._token = None
        self._operation = None
        self._lock.release()

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        token = self.acquire(operation)
        try:
            yield
        finally:
            self.release(token)
