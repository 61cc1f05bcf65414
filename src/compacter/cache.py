"""
In-process stand-in for memcached.

Values are pickled on write and unpickled on every read, the same round
trip a memcached client puts them through, so a Compacter stored here is
really dumped and loaded.
"""
import logging
import pickle
import threading
import time

from compacter.conf import settings

logger = logging.getLogger("user_info." + __name__)

DEFAULT_TIMEOUT = settings.CACHE["default_timeout"]


class MemoryCache:
    def __init__(self, default_timeout=DEFAULT_TIMEOUT):
        self.default_timeout = default_timeout
        self._store = {}
        self._lock = threading.Lock()

    def _expires(self, timeout):
        timeout = self.default_timeout if timeout is None else timeout
        if timeout is None:
            return None
        return time.monotonic() + timeout

    def _get(self, key):
        entry = self._store.get(key)
        if entry is None:
            return None
        expires, payload = entry
        if expires is not None and expires <= time.monotonic():
            logger.debug("Cache entry %s expired", key)
            del self._store[key]
            return None
        return payload

    def write(self, key, value, timeout=None):
        payload = pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        with self._lock:
            self._store[key] = (self._expires(timeout), payload)
        logger.debug("Wrote %s (%d bytes)", key, len(payload))
        return value

    def read(self, key):
        """Stored value for `key` or None"""
        with self._lock:
            payload = self._get(key)
        if payload is None:
            return None
        return pickle.loads(payload)

    def fetch(self, key, compute, timeout=None):
        """
        Return the value stored for `key`. On a miss call `compute`, store
        what it returns and return it as is.
        """
        with self._lock:
            payload = self._get(key)
        if payload is not None:
            logger.debug("Cache hit %s", key)
            return pickle.loads(payload)

        logger.debug("Cache miss %s", key)
        return self.write(key, compute(), timeout)

    def delete(self, key):
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self):
        with self._lock:
            self._store.clear()

    def size(self, key):
        """Pickled size of the entry in bytes (0 if missing)"""
        with self._lock:
            payload = self._get(key)
        return 0 if payload is None else len(payload)

    def __contains__(self, key):
        with self._lock:
            return self._get(key) is not None
