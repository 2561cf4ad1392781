"""Real-time infrastructure — Redis pub/sub for cache invalidation.

Learn: the shared CacheRegistry keeps every portal session of ONE process
consistent. When several processes serve the portal, a confirmed write
in one of them is published on Redis, and every other process marks its
mirrors of that table stale so the next read refetches.
"""
