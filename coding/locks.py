"""
Per-submission locks.

Two grading requests for the same submission run one after the other:
KeyedLocks orders the threads of one process, advisory_lock orders
processes sharing a PostgreSQL database (API workers, grade_submission).
"""
import hashlib
import threading
from contextlib import contextmanager

from django.db import DEFAULT_DB_ALIAS, connections


class KeyedLocks:
    """Registry of reentrant locks keyed by submission id. Entries are dropped once unused."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    @contextmanager
    def hold(self, key):
        key = str(key)
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.RLock(), 0]
            entry[1] += 1
        lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def __len__(self):
        with self._guard:
            return len(self._locks)


submission_locks = KeyedLocks()


def advisory_key(key):
    """Signed 64-bit id for pg_advisory_lock, stable across processes."""
    digest = hashlib.blake2b(str(key).encode('utf-8'), digest_size=8).digest()
    return int.from_bytes(digest, 'big', signed=True)


@contextmanager
def advisory_lock(key, using=DEFAULT_DB_ALIAS):
    """
    Hold a session-level PostgreSQL advisory lock on `key` for the block.

    Blocks until other sessions holding the same key release it. On other
    database vendors (SQLite in development and tests) this is a no-op and
    only the in-process locks apply.
    """
    connection = connections[using]
    if connection.vendor != 'postgresql':
        yield
        return
    lock_id = advisory_key(key)
    with connection.cursor() as cursor:
        cursor.execute('SELECT pg_advisory_lock(%s)', [lock_id])
    try:
        yield
    finally:
        with connection.cursor() as cursor:
            cursor.execute('SELECT pg_advisory_unlock(%s)', [lock_id])
