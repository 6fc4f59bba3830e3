"""Explicit SQLite storage handle and unit-of-work guard.

A :class:`Database` owns one SQLite connection and is created once by the
application factory, then passed to every store function and service.  There
is no module-level client.

Writes that must succeed or fail together run inside a :class:`UnitOfWork`::

    db = Database(Path(":memory:"))
    with db.transaction() as uow:
        uow.execute("UPDATE bounties SET complete = 1 WHERE id = ?", (bounty_id,))
        row = uow.query_one("SELECT * FROM bounties WHERE id = ?", (bounty_id,))

Leaving the ``with`` block normally commits; leaving it through an exception
rolls back.  Both :class:`Database` and :class:`UnitOfWork` satisfy the
:class:`Handle` protocol, so store functions accept either: reads issued on a
:class:`Database` run in autocommit mode, outside any open unit of work.

Design notes
------------
- The connection is opened with ``isolation_level=None`` so that transaction
  boundaries are issued explicitly (``BEGIN IMMEDIATE`` / ``COMMIT`` /
  ``ROLLBACK``) instead of implicitly by the ``sqlite3`` module.
- ``BEGIN IMMEDIATE`` takes SQLite's write lock up front; together with the
  per-handle :class:`threading.RLock` this serialises writers.
- ``max_wait`` bounds how long a unit of work waits for the lock; ``timeout``
  bounds how long it may run.  A unit of work that overruns is rolled back at
  exit.  Neither is retried.
- All SQL uses parameterised ``?`` placeholders.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path
from types import TracebackType
from typing import Any, Protocol

from bountyhub.errors import TransactionTimeoutError

logger = logging.getLogger(__name__)

#: Default wait budget, in seconds, for starting a unit of work.
DEFAULT_MAX_WAIT: float = 5.0

#: Default run budget, in seconds, for a unit of work.
DEFAULT_TIMEOUT: float = 10.0


class Handle(Protocol):
    """Anything store functions can run SQL against."""

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor: ...

    def query(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]: ...

    def query_one(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None: ...


class Database:
    """A single SQLite connection shared by one application instance.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  ``Path(":memory:")`` is supported
        for in-process testing.
    max_wait:
        Default number of seconds :meth:`transaction` waits to start.
    timeout:
        Default number of seconds a unit of work may run before it is rolled
        back.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        max_wait: float = DEFAULT_MAX_WAIT,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._db_path = Path(db_path)
        self.max_wait = max_wait
        self.timeout = timeout
        self._lock = threading.RLock()
        self._conn = self._open_connection(self._db_path, max_wait)

    @property
    def path(self) -> Path:
        """Filesystem path (or ``:memory:``) this handle is bound to."""
        return self._db_path

    # ------------------------------------------------------------------
    # Units of work
    # ------------------------------------------------------------------

    def transaction(
        self,
        *,
        max_wait: float | None = None,
        timeout: float | None = None,
    ) -> UnitOfWork:
        """Return a new :class:`UnitOfWork` bound to this connection.

        Parameters
        ----------
        max_wait:
            Override for the start budget.  Defaults to :attr:`max_wait`.
        timeout:
            Override for the run budget.  Defaults to :attr:`timeout`.

        Returns
        -------
        UnitOfWork
            A guard that must be entered with ``with``.
        """
        return UnitOfWork(
            self._conn,
            self._lock,
            max_wait=self.max_wait if max_wait is None else max_wait,
            timeout=self.timeout if timeout is None else timeout,
        )

    # ------------------------------------------------------------------
    # Autocommit access
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        """Run a single statement in autocommit mode."""
        with self._lock:
            return self._conn.execute(sql, params)

    def executescript(self, script: str) -> None:
        """Run a multi-statement script (used for schema creation)."""
        with self._lock:
            self._conn.executescript(script)

    def query(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        """Return every row produced by *sql*."""
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def query_one(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        """Return the first row produced by *sql*, or ``None``."""
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def ping(self) -> bool:
        """Return ``True`` if the database answers a trivial query."""
        try:
            self.query_one("SELECT 1")
            return True
        except sqlite3.Error:
            return False

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _open_connection(db_path: Path, max_wait: float) -> sqlite3.Connection:
        """Open a SQLite connection and configure pragmas.

        Parameters
        ----------
        db_path:
            Path (or ``:memory:``) for the SQLite database.
        max_wait:
            Busy timeout handed to SQLite, so waits on another process's
            write lock share the unit-of-work start budget.

        Returns
        -------
        sqlite3.Connection
            A connection in explicit-transaction mode with
            ``row_factory = sqlite3.Row`` and foreign keys enforced.
        """
        if str(db_path) != ":memory:":
            db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(db_path),
            timeout=max_wait,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn


class UnitOfWork:
    """Scoped transaction guard over a :class:`Database` connection.

    Entering the guard acquires the connection lock (waiting at most
    ``max_wait`` seconds) and issues ``BEGIN IMMEDIATE``.  Exiting commits,
    or rolls back when the block raised or ran longer than ``timeout``
    seconds.  The lock is always released.

    Instances are single-use and are normally obtained from
    :meth:`Database.transaction`.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        lock: threading.RLock,
        *,
        max_wait: float,
        timeout: float,
    ) -> None:
        self._conn = conn
        self._lock = lock
        self._max_wait = max_wait
        self._timeout = timeout
        self._started_at: float | None = None
        self._active = False

    @property
    def active(self) -> bool:
        """``True`` between a successful ``__enter__`` and ``__exit__``."""
        return self._active

    def __enter__(self) -> UnitOfWork:
        if self._started_at is not None:
            raise RuntimeError("A UnitOfWork cannot be entered twice.")
        if not self._lock.acquire(timeout=self._max_wait):
            raise TransactionTimeoutError(
                f"Could not start a transaction within {self._max_wait}s."
            )
        try:
            if self._conn.in_transaction:
                raise RuntimeError("A transaction is already open on this connection.")
            self._conn.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as exc:
            self._lock.release()
            raise TransactionTimeoutError(f"Could not start a transaction: {exc}") from exc
        except BaseException:
            self._lock.release()
            raise
        self._started_at = time.monotonic()
        self._active = True
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if exc_type is not None:
                self._rollback()
                logger.debug("Transaction rolled back after %s", exc_type.__name__)
                return
            elapsed = time.monotonic() - (self._started_at or 0.0)
            if elapsed > self._timeout:
                self._rollback()
                raise TransactionTimeoutError(
                    f"Transaction ran for {elapsed:.2f}s, exceeding the "
                    f"{self._timeout}s timeout; rolled back."
                )
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error:
                # A failed COMMIT (e.g. a deferred constraint) leaves the transaction open.
                self._rollback()
                raise
        finally:
            self._active = False
            self._lock.release()

    # ------------------------------------------------------------------
    # Handle protocol
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        """Run a statement inside this unit of work."""
        self._ensure_active()
        return self._conn.execute(sql, params)

    def query(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        """Return every row produced by *sql* inside this unit of work."""
        return self.execute(sql, params).fetchall()

    def query_one(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        """Return the first row produced by *sql* inside this unit of work."""
        return self.execute(sql, params).fetchone()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _ensure_active(self) -> None:
        if not self._active:
            raise RuntimeError("UnitOfWork used outside its 'with' block.")

    def _rollback(self) -> None:
        # SQLite may already have rolled back on some constraint errors.
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")
