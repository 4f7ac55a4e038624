"""Per-document-key locks serializing concurrent ingestion of the same document.

Provides:
- KeyedLock: in-process lock map with reference counting so idle keys are dropped.
- RedisKeyedLock: cross-process variant built on redis-py's Redis.lock, for
  deployments running several API workers against one database.

Both expose hold(key) as a context manager. Different keys never block each other.
"""
import hashlib
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Protocol

import redis

logger = logging.getLogger(__name__)


class DocumentLock(Protocol):
    def hold(self, key: str):
        ...


class KeyedLock:
    """Mutual exclusion per string key within one process."""

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, number of holders and waiters]
        self._locks: Dict[str, List] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
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
                    del self._locks[key]

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)


class RedisKeyedLock:
    """Mutual exclusion per key across processes via Redis.

    Args:
        client: A redis.Redis client.
        timeout_seconds: Lock auto-expiry, bounding how long a crashed holder blocks others.
        namespace: Key prefix.
    """

    def __init__(self, client: redis.Redis, timeout_seconds: int = 600, namespace: str = "rag:ingest:lock"):
        self._client = client
        self.timeout_seconds = timeout_seconds
        self.namespace = namespace

    def _name(self, key: str) -> str:
        h = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return f"{self.namespace}:{h}"

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._client.lock(self._name(key), timeout=self.timeout_seconds)
        lock.acquire(blocking=True)
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError:
                # expired while held; the next holder already owns it
                logger.warning("Ingestion lock for %s expired before release", key)


def document_key(document_name: str, industry: str) -> str:
    return f"{industry}\x1f{document_name}"


def hash_key(content_hash: str) -> str:
    return f"hash\x1f{content_hash}"
