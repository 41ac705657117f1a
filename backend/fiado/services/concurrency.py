# Overview: Service-layer helpers for transactions and row locking.

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text, update

from ..extensions import db


def _dialect_name() -> str:
    return db.session.get_bind().dialect.name


@contextmanager
def atomic():
    """
    Run a block as one transaction on the request session.

    Commits when the block finishes; any exception rolls back everything
    written inside the block and is re-raised unchanged.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() refreshes rows already in the identity map so the
    caller always sees the values read under the lock.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; pair with claim_write_lock().
    """
    return query.with_for_update().populate_existing()


def claim_write_lock(model, *criteria) -> None:
    """
    Take the database write lock before reading rows that will be updated.

    Only needed on SQLite, which has no row locks: a no-op UPDATE on the
    target rows makes this connection the single writer until commit or
    rollback, so concurrent callers queue here (bounded by the busy
    timeout) and then read the committed state. Other backends rely on
    lock_for_update() alone.
    """
    if _dialect_name() != "sqlite":
        return
    table = model.__table__
    pk = table.c.id
    db.session.execute(update(table).where(*criteria).values({pk: pk}))


def apply_lock_timeout(timeout_ms: int | None = None) -> None:
    """
    Bound how long the current transaction waits on locked rows.

    A stalled transaction holding a sale lock would otherwise block every
    other payment on that sale indefinitely.
    """
    if timeout_ms is None:
        timeout_ms = current_app.config.get("CREDIT_LOCK_TIMEOUT_MS", 5000)
    timeout_ms = int(timeout_ms)
    if timeout_ms <= 0:
        return

    dialect = _dialect_name()
    if dialect == "postgresql":
        # SET LOCAL does not accept bind parameters
        db.session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))
    elif dialect == "mysql":
        # Session scope: MySQL has no transaction-level lock wait timeout, so the
        # value stays on the pooled connection until the next call overwrites it
        seconds = max(1, -(-timeout_ms // 1000))
        db.session.execute(text(f"SET SESSION innodb_lock_wait_timeout = {seconds}"))
    elif dialect == "sqlite":
        db.session.execute(text(f"PRAGMA busy_timeout = {timeout_ms}"))
