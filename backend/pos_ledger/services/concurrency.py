# Overview: Transaction scoping and row locking shared by the ledger services.

from __future__ import annotations

from contextlib import contextmanager


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic(session):
    """
    Own one database transaction for a mutating ledger call.

    Commits when the block exits normally; rolls back and re-raises on any
    exception. Code inside the block only flushes. Nothing is retried: a
    replayed sale fails on the receipt uniqueness constraint instead.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
