"""
Bundle storage.

Components:
- base: KeyValueStore contract (insert-only put, get)
- memory / sql: back-ends
- factory: back-end selection from settings
- bundle_store: validation + upload/get of Bundles
"""
from .base import KeyValueStore
from .bundle_store import BundleStore
from .factory import StoreFactory
from .memory import InMemoryKeyValueStore
from .sql import SQLAlchemyKeyValueStore

__all__ = [
    "KeyValueStore",
    "BundleStore",
    "StoreFactory",
    "InMemoryKeyValueStore",
    "SQLAlchemyKeyValueStore",
]
