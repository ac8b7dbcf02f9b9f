"""
Infrastructure Cache Package.
Time-bounded caching components.
"""

from contentsync.infrastructure.cache.timed_cache import TimedCache

__all__ = ["TimedCache"]
