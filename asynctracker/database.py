"""A small transactional wrapper around an SQLite connection."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from os import PathLike
from typing import Any, TypeVar

_log = logging.getLogger(__name__)

T = TypeVar("T")


class Database:
    """One SQLite connection shared by the service, used through transactions."""

    def __init__(self, path: str | PathLike[str]) -> None:
        try:
            self._conn = sqlite3.connect(
                path, isolation_level=None, check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("SELECT 1")
        except sqlite3.Error as exc:
            _log.error("failed to open database: %s", exc)
            raise
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block in a transaction: commit on success, roll back on error."""
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                yield self._conn
            except BaseException as exc:
                self._conn.execute("ROLLBACK")
                _log.error("error executing transaction: %s", exc)
                raise
            self._conn.execute("COMMIT")

    def execute_tx(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Call fn with the connection inside a transaction and return its result."""
        with self.transaction() as conn:
            return fn(conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()