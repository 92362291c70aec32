"""
Process-local abuse counters for unauthenticated-ish surfaces.

These live in the ``burst`` cache alias (a bounded LocMemCache per worker),
reset when the process restarts, and are never the source of truth: the
persistent per-user limiter in ``wallets.services.rate_limit`` is.
"""

from django.conf import settings
from django.core.cache import caches

BURST_CACHE_ALIAS = "burst"


class LocalBurstLimiter:
    """Fixed-window request counter keyed by an opaque identity (a hashed IP)."""

    def __init__(self, prefix, window_seconds, max_requests, cache_alias=BURST_CACHE_ALIAS):
        self.prefix = prefix
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.cache_alias = cache_alias

    @property
    def cache(self):
        return caches[self.cache_alias]

    def _key(self, identity):
        return f"{self.prefix}:{identity}"

    def allow(self, identity):
        key = self._key(identity)
        if self.cache.add(key, 1, timeout=self.window_seconds):
            return True
        try:
            count = self.cache.incr(key)
        except ValueError:
            # Expired between add() and incr().
            self.cache.set(key, 1, timeout=self.window_seconds)
            return True
        return count <= self.max_requests


class FailureTracker:
    """Counts failed attempts per identity; blocked once the count reaches the limit."""

    def __init__(self, prefix, window_seconds, max_failures, cache_alias=BURST_CACHE_ALIAS):
        self.prefix = prefix
        self.window_seconds = window_seconds
        self.max_failures = max_failures
        self.cache_alias = cache_alias

    @property
    def cache(self):
        return caches[self.cache_alias]

    def _key(self, identity):
        return f"{self.prefix}:{identity}"

    def is_blocked(self, identity):
        return (self.cache.get(self._key(identity)) or 0) >= self.max_failures

    def record(self, identity):
        key = self._key(identity)
        if self.cache.add(key, 1, timeout=self.window_seconds):
            return 1
        try:
            return self.cache.incr(key)
        except ValueError:
            self.cache.set(key, 1, timeout=self.window_seconds)
            return 1


def lookup_burst_limiter():
    limit = settings.LOOKUP_BURST_LIMIT
    return LocalBurstLimiter("lookup:ip", limit["window_seconds"], limit["max_requests"])


def lookup_failure_tracker():
    limit = settings.LOOKUP_FAILURE_LIMIT
    return FailureTracker("lookup:failed", limit["window_seconds"], limit["max_failures"])
