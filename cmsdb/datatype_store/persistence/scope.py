"""
Ambient transaction scopes.

A Scope is one logical unit of work: a single sqlite transaction plus
the callbacks that must run only once that transaction has committed
(cache invalidation, event publication).

Invariants:
    - At most one transaction per logical operation; a nested
      create_scope() joins the outer scope instead of opening another
    - Commit callbacks run after COMMIT, in registration order
    - On any exception the transaction is rolled back and the commit
      callbacks are discarded
    - Keys marked stale stay stale for the remainder of the scope

How to change safely:
    - Never commit from inside a repository; only the outermost scope
      commits
    - Keep callbacks free of store access, the connection is closed by
      the time they run
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Optional

from ..errors import ScopeRequiredError
from .database import Database, Transaction

logger = logging.getLogger(__name__)

CommitCallback = Callable[[], None]


class Scope:
    """A unit of work bound to one transaction.

    Attributes:
        transaction: Statement interface for this unit of work
        read_only: Whether the scope was opened for reads only
    """

    def __init__(self, transaction: Transaction, read_only: bool = False) -> None:
        self.transaction = transaction
        self.read_only = read_only
        self._callbacks: list[CommitCallback] = []
        self._stale_keys: set[object] = set()

    def on_commit(self, callback: CommitCallback) -> None:
        """Run callback once the transaction has committed."""
        self._callbacks.append(callback)

    def mark_stale(self, key: object) -> None:
        """Record that cached data for key no longer matches this scope."""
        self._stale_keys.add(key)

    def is_stale(self, key: object) -> bool:
        return key in self._stale_keys

    def _run_commit_callbacks(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()


class ScopeProvider:
    """Opens scopes and tracks the ambient one.

    The ambient scope is held in a ContextVar so that each thread and
    each asyncio task sees its own.

    Example:
        >>> scopes = ScopeProvider(database)
        >>> with scopes.create_scope() as scope:
        ...     repository.save(data_type)
        ...     scope.on_commit(lambda: print("saved"))
    """

    def __init__(self, database: Database) -> None:
        self.database = database
        self._current: ContextVar[Optional[Scope]] = ContextVar(
            f"datatype_store_scope_{id(self)}", default=None
        )

    @property
    def ambient_scope(self) -> Optional[Scope]:
        return self._current.get()

    def require_scope(self) -> Scope:
        """Return the ambient scope.

        Raises:
            ScopeRequiredError: If no scope is open
        """
        scope = self._current.get()
        if scope is None:
            raise ScopeRequiredError()
        return scope

    @contextmanager
    def create_scope(self, read_only: bool = False) -> Iterator[Scope]:
        """Open a scope, or join the ambient one.

        Args:
            read_only: Open with a deferred transaction (ignored when
                joining an outer scope)

        Yields:
            The scope
        """
        outer = self._current.get()
        if outer is not None:
            yield outer
            return

        with self.database.connect() as conn:
            scope = Scope(Transaction(conn), read_only=read_only)
            token = self._current.set(scope)
            try:
                scope.transaction.execute("BEGIN" if read_only else "BEGIN IMMEDIATE")
                yield scope
                scope.transaction.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                    logger.debug("Scope rolled back")
                raise
            finally:
                self._current.reset(token)

        scope._run_commit_callbacks()
