"""Coordination store subpackage.

- kv: raw KV backends (Redis, in-memory) and connection with backoff
- keys: key layout of the managed state
- client: typed accessor used by the creator and the controller
"""

from .client import CDCStoreClient
from .kv import KVStore, MemoryKVStore, RedisKVStore, connect

__all__ = [
    "CDCStoreClient",
    "KVStore",
    "MemoryKVStore",
    "RedisKVStore",
    "connect",
]
