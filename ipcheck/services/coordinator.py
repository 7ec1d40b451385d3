"""
Cache-aside coordination with a distributed lock

At most one caller computes a given key at a time, across every process
sharing the cache backend. Other callers poll the cache until the value
appears or the lock frees up.
"""

import json
import logging
import uuid
from typing import Awaitable, Callable, Optional

import backoff

from ipcheck.core.exceptions import CacheError, LockTimeoutError
from ipcheck.core.models import AggregateRecord
from ipcheck.utils.cache import CacheStore

logger = logging.getLogger(__name__)

Compute = Callable[[str], Awaitable[AggregateRecord]]

class CacheAsideCoordinator:
    """Serves lookups from cache and guards recomputation with a lock"""

    def __init__(
        self,
        store: CacheStore,
        compute: Compute,
        ttl: int = 900,
        lock_ttl: int = 35,
        retry_interval: float = 0.1,
        wait_timeout: float = 40.0,
        key_prefix: str = "ip:check:",
    ):
        """
        Initialize the coordinator

        Args:
            store: Shared cache and lock store
            compute: Coroutine function producing a fresh record for an IP
            ttl: Cache entry lifetime in seconds
            lock_ttl: Lock lifetime in seconds; bounds a crashed holder's hold
            retry_interval: Pause between polls while another caller computes
            wait_timeout: Longest a caller waits for someone else's computation
            key_prefix: Prefix of cache keys
        """
        self.store = store
        self.compute = compute
        self.ttl = ttl
        self.lock_ttl = lock_ttl
        self.key_prefix = key_prefix

        self._poll = backoff.on_predicate(
            backoff.constant,
            predicate=lambda record: record is None,
            interval=retry_interval,
            jitter=None,
            max_time=wait_timeout,
            on_backoff=self._log_contention,
        )(self._attempt)
        self.wait_timeout = wait_timeout

    def cache_key(self, ip: str) -> str:
        return f"{self.key_prefix}{ip}"

    async def resolve(self, ip: str) -> AggregateRecord:
        """
        Return the record for an IP, computing it at most once at a time

        Cache and lock backend failures degrade to direct computation.

        Args:
            ip: Validated IP address

        Returns:
            AggregateRecord, with from_cache set when served from cache

        Raises:
            LockTimeoutError: If another caller held the lock past wait_timeout
            Whatever the compute function raises
        """
        record = await self._poll(ip)
        if record is None:
            raise LockTimeoutError(
                f"Gave up waiting for a concurrent lookup of {ip} after {self.wait_timeout}s"
            )
        return record

    async def _attempt(self, ip: str) -> Optional[AggregateRecord]:
        """One cache read plus lock attempt; None means someone else holds the lock"""
        key = self.cache_key(ip)

        cached = await self._read(key)
        if cached is not None:
            return cached

        lock_key = f"lock:{key}"
        token = uuid.uuid4().hex
        try:
            acquired = await self.store.set_if_absent(lock_key, token, self.lock_ttl)
        except CacheError as e:
            logger.warning(f"Lock unavailable for {key}, computing without it: {e}")
            return await self._compute_and_store(ip, key)

        if not acquired:
            return None

        try:
            return await self._compute_and_store(ip, key)
        finally:
            try:
                await self.store.delete(lock_key, expected=token)
            except CacheError as e:
                logger.warning(f"Could not release {lock_key}, it will expire in {self.lock_ttl}s: {e}")

    async def _read(self, key: str) -> Optional[AggregateRecord]:
        try:
            raw = await self.store.get(key)
        except CacheError as e:
            logger.warning(f"Cache read failed for {key}, treating as miss: {e}")
            return None

        if raw is None:
            return None

        try:
            record = AggregateRecord.from_dict(json.loads(raw))
        except (ValueError, TypeError) as e:
            logger.warning(f"Ignoring malformed cache entry for {key}: {e}")
            return None

        record.from_cache = True
        logger.debug(f"Cache hit for {key}")
        return record

    async def _compute_and_store(self, ip: str, key: str) -> AggregateRecord:
        # Failures propagate and are never cached
        record = await self.compute(ip)
        try:
            await self.store.set(key, json.dumps(record.to_dict()), self.ttl)
        except CacheError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
        return record

    def _log_contention(self, details):
        logger.debug(
            f"Lookup of {details['args'][0]} in progress elsewhere, "
            f"retry {details['tries']} after {details['elapsed']:.2f}s"
        )
