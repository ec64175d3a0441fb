"""Fixed-capacity caches shared by the rule engine."""

from httpsify.cache.lru import LRUCache

__all__ = ["LRUCache"]
