from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import ConcurrencyConflictError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

# Errors raised when two writers for the same student collide.
_CONFLICT_ERRNOS = {
    errorcode.ER_DUP_ENTRY,
    errorcode.ER_LOCK_DEADLOCK,
    errorcode.ER_LOCK_WAIT_TIMEOUT,
}


@contextmanager
def db_transaction(conn_factory: DatabaseConnection):
    """One explicit transaction: commit on clean exit, rollback on any error.

    Conflicting concurrent writes surface as ConcurrencyConflictError.
    """
    conn = conn_factory.connect()
    try:
        conn.start_transaction(isolation_level="READ COMMITTED")
        cur = conn.cursor(dictionary=True)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as exc:
        conn.rollback()
        if exc.errno in _CONFLICT_ERRNOS:
            logger.warning("Transaction rolled back on conflict (errno=%s)", exc.errno)
            raise ConcurrencyConflictError("Another update is in progress, please retry") from exc
        raise
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])
