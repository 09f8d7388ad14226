from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class KeyValueStore(ABC):
    """
    Abstract base class for durable key-value back-ends.
    
    put() is insert-only: writing an existing key raises ConflictError,
    and of several concurrent puts for one key exactly one succeeds.
    """
    
    @abstractmethod
    def put(self, key: str, value: Dict[str, Any]) -> None:
        """Persist value under key; returns only once the write is durable"""
        pass
    
    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored value, or None if the key is absent"""
        pass
    
    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier"""
        pass
