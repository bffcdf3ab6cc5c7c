"""Mutual exclusion for state-mutating entry points."""

import functools
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Generator, Optional, TypeVar

from augury.exceptions import ReentrancyError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)


class ReentrancyGuard:
    """
    Serializes mutating operations and rejects re-entry.

    A second entry from the thread that already holds the guard (for example
    a payout recipient calling back into the engine during a transfer) fails
    immediately with ReentrancyError. Other threads block until the running
    operation finishes.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._operation: Optional[str] = None

    @property
    def entered(self) -> bool:
        return self._owner is not None

    @contextmanager
    def hold(self, operation: str) -> Generator[None, None, None]:
        me = threading.get_ident()
        if self._owner == me:
            logger.warning(
                f"Rejected reentrant call to {operation} during {self._operation}"
            )
            raise ReentrancyError(
                f"{operation} called while {self._operation} is in progress"
            )

        with self._lock:
            self._owner = me
            self._operation = operation
            try:
                yield
            finally:
                self._owner = None
                self._operation = None


def non_reentrant(method: F) -> F:
    """Run a method under its owner's ``_guard``."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._guard.hold(method.__name__):
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]
