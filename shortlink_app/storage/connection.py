"""
Lazily established, process-wide store connection.

The first caller runs the connect routine; every concurrent caller waits on
the same in-flight future instead of opening a second connection.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class LazyConnection(Generic[T]):
    """
    Memoized connection handle.

    Usage:
        connection = LazyConnection(lambda: MongoClient(url)["db"], name="mongodb")
        db = connection.get()   # connects on first call, reuses afterwards

    A failed connect attempt is delivered to everyone waiting on it, then the
    memo is cleared so the next call tries again.
    """

    def __init__(self, connect: Callable[[], T], name: str = "store"):
        """
        Args:
            connect: Zero-argument callable returning the connected handle
            name: Label used in log messages
        """
        self._connect = connect
        self.name = name
        self._lock = threading.Lock()
        self._future: Optional[Future] = None

    @property
    def is_connected(self) -> bool:
        future = self._future
        return future is not None and future.done() and future.exception() is None

    def get(self) -> T:
        """Return the shared handle, connecting on first use"""
        with self._lock:
            future = self._future
            owner = future is None
            if owner:
                future = Future()
                self._future = future

        if owner:
            self._establish(future)

        return future.result()

    def _establish(self, future: Future) -> None:
        logger.info(f"Connecting to {self.name}")
        try:
            handle = self._connect()
        except BaseException as e:
            with self._lock:
                if self._future is future:
                    self._future = None
            logger.error(f"Connection to {self.name} failed: {e}")
            future.set_exception(e)
            return

        future.set_result(handle)
        logger.info(f"Connected to {self.name}")

    def reset(self) -> Optional[T]:
        """
        Forget the current handle so the next get() reconnects.

        Returns:
            The previous handle if one was established, else None
        """
        with self._lock:
            future, self._future = self._future, None

        if future is not None and future.done() and future.exception() is None:
            return future.result()
        return None
