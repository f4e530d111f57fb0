"""
Storage Package

Key-value persistence boundary and the collections persisted on top of it.
"""

from conveyance.storage.kv_store import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from conveyance.storage.update_store import UpdateRecordStore

__all__ = [
    'KeyValueStore',
    'MemoryKeyValueStore',
    'FileKeyValueStore',
    'UpdateRecordStore',
]
