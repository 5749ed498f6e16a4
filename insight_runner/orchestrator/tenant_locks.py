"""
Tenant Locks Module
Single Responsibility: Serialize work that touches the same tenant

A full run and an out-of-band retry-failed-items call for the same tenant must
not overlap, otherwise the same failed sub-unit can be processed twice.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from insight_runner.utils.logging_config import get_logger

logger = get_logger(__name__)


class TenantLockRegistry:
    """One lock per tenant id, created on first use and kept for the process lifetime"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, tenant_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(tenant_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[tenant_id] = lock
            return lock

    def acquire(self, tenant_id: str, timeout: Optional[float] = None) -> bool:
        """
        Takes the tenant's lock, waiting at most ``timeout`` seconds (forever if None).

        Returns:
            True if the lock was taken; the caller must then ``release`` it
        """
        lock = self._lock_for(tenant_id)
        if lock.acquire(blocking=False):
            return True
        logger.info(f"Waiting for in-flight work on tenant {tenant_id}")
        if timeout is None:
            return lock.acquire()
        return lock.acquire(timeout=timeout)

    def release(self, tenant_id: str) -> None:
        """Releases the tenant's lock. May be called from a different thread."""
        self._lock_for(tenant_id).release()

    @contextmanager
    def hold(self, tenant_id: str) -> Iterator[None]:
        """Blocks until no other caller holds this tenant's lock"""
        self.acquire(tenant_id)
        try:
            yield
        finally:
            self.release(tenant_id)

    def is_held(self, tenant_id: str) -> bool:
        return self._lock_for(tenant_id).locked()
