"""
Transaction-scoped locks using PostgreSQL advisory locks.
"""
from contextlib import contextmanager
from uuid import UUID

from django.db import connection


@contextmanager
def advisory_lock(scope: str, key: UUID):
    """
    Acquire a transaction-scoped advisory lock on ``scope:key``.

    Usage:
        with advisory_lock("invoice", invoice_id):
            # Read-modify-write the invoice balance
            pass

    Must run inside ``transaction.atomic``; the lock is released when the
    transaction ends. Other backends serialize writers themselves (SQLite
    takes a database-wide write lock), so nothing is taken there.
    """
    if connection.vendor == "postgresql":
        with connection.cursor() as cursor:
            cursor.execute(
                "SELECT pg_advisory_xact_lock(hashtext(%s)::bigint)",
                [f"{scope}:{key}"],
            )
    yield


def invoice_lock(invoice_id: UUID):
    return advisory_lock("invoice", invoice_id)
