"""Factory for creating bundle store back-ends from configuration"""
from typing import Optional

from sqlalchemy.orm import Session

from ..config import settings
from .base import KeyValueStore
from .memory import InMemoryKeyValueStore
from .sql import SQLAlchemyKeyValueStore


class StoreFactory:
    """
    Factory for creating key-value back-ends from settings.
    
    Supported back-ends:
    - sql: SQLAlchemy table (durable, uses DATABASE_URL)
    - memory: process-local dictionary (development and tests)
    """
    
    _memory_store: Optional[InMemoryKeyValueStore] = None
    
    @classmethod
    def create(cls, db: Optional[Session] = None) -> KeyValueStore:
        """
        Create the back-end named by settings.bundle_store_backend.
        
        Args:
            db: Database session, required for the sql back-end
            
        Raises:
            ValueError: If the back-end is not supported or no session was given
        """
        backend = settings.bundle_store_backend.lower()
        
        if backend == "sql":
            if db is None:
                raise ValueError("The sql bundle store needs a database session")
            return SQLAlchemyKeyValueStore(db)
        elif backend == "memory":
            # One shared instance, otherwise every request would see an empty store
            if cls._memory_store is None:
                cls._memory_store = InMemoryKeyValueStore()
            return cls._memory_store
        else:
            raise ValueError(f"Unsupported bundle store backend: {backend}. Supported: 'sql', 'memory'")
