"""
Tessera Transactions — atomic() context manager and callback helper.

Nesting maps onto savepoints (handled by the database engine), so an
inner block can roll back without discarding the outer one.

Usage:
    from tessera.models.transactions import atomic, run_in_transaction

    with atomic():
        user = User.create({"name": "Alice"})
        Profile.create({"user_id": user.pk})

    with atomic() as outer:
        User.create({"name": "Bob"})
        try:
            with atomic():
                Post.create({"title": "Hello"})
                raise ValueError("oops")     # only the Post is rolled back
        except ValueError:
            pass
        outer.on_commit(lambda: notify("bob created"))

    total = run_in_transaction(lambda: transfer(a, b, 10))
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from .context import OrmContext, resolve_context

logger = logging.getLogger("tessera.models.transactions")

__all__ = ["Atomic", "atomic", "run_in_transaction"]


class Atomic:
    """
    Context manager for one transaction level.

    - ``on_commit(fn)`` runs after the outermost commit only
    - ``on_rollback(fn)`` runs when this level rolls back
    - ``durable=True`` refuses to nest inside another transaction
    """

    def __init__(self, context: Optional[OrmContext] = None, *, durable: bool = False):
        self._context = context
        self._durable = durable
        self._is_outermost = False
        self._level = 0
        self._commit_hooks: List[Callable[[], Any]] = []
        self._rollback_hooks: List[Callable[[], Any]] = []

    @property
    def context(self) -> OrmContext:
        return resolve_context(self._context)

    def on_commit(self, fn: Callable[[], Any]) -> None:
        self._commit_hooks.append(fn)

    def on_rollback(self, fn: Callable[[], Any]) -> None:
        self._rollback_hooks.append(fn)

    def _fire_hooks(self, hooks: List[Callable[[], Any]]) -> None:
        # The transaction outcome is already final; hook failures are logged.
        for hook in hooks:
            try:
                hook()
            except Exception as exc:
                logger.error(f"Transaction hook failed: {exc}")

    def __enter__(self) -> Atomic:
        db = self.context.db
        if db.in_transaction and self._durable:
            raise RuntimeError("atomic(durable=True) cannot be nested inside another transaction")
        self._is_outermost = not db.in_transaction
        db.begin()
        self._level = db.transaction_depth
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        db = self.context.db
        if exc_type is not None:
            db.rollback()
            self._fire_hooks(self._rollback_hooks)
            return False
        try:
            db.commit()
        except Exception:
            _close_failed_level(db, self._level)
            self._fire_hooks(self._rollback_hooks)
            raise
        logger.debug("Committed transaction" if self._is_outermost else "Released savepoint")
        if self._is_outermost:
            self._fire_hooks(self._commit_hooks)
        return False


def _close_failed_level(db, level: int) -> None:
    # An outermost commit failure is already rolled back by the engine.
    if db.transaction_depth >= level:
        db.rollback()


def atomic(context: Optional[OrmContext] = None, *, durable: bool = False) -> Atomic:
    """Create an atomic transaction context manager."""
    return Atomic(context, durable=durable)


def run_in_transaction(callback: Callable[[], Any], context: Optional[OrmContext] = None) -> Any:
    """
    begin, ``callback()``, commit; on any exception roll back and re-raise.

    A failing commit counts as an exception: the transaction is rolled
    back and the ``QueryFault`` propagates.

    Returns whatever the callback returned.
    """
    db = resolve_context(context).db
    db.begin()
    level = db.transaction_depth
    try:
        result = callback()
    except BaseException:
        db.rollback()
        raise
    try:
        db.commit()
    except Exception:
        _close_failed_level(db, level)
        raise
    return result
