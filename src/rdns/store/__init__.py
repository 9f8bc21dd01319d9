"""Key-value store backends."""

from rdns.store.base import KeyValueStore, Node
from rdns.store.etcd import EtcdStore
from rdns.store.memory import MemoryStore

__all__ = [
    "KeyValueStore",
    "Node",
    "EtcdStore",
    "MemoryStore",
]
