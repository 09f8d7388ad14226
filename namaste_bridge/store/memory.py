import copy
import threading
from typing import Any, Dict, Optional

from ..exceptions import ConflictError
from .base import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store guarded by a lock; values are deep-copied in and out."""
    
    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
    
    def put(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            if key in self._data:
                raise ConflictError(key)
            self._data[key] = copy.deepcopy(value)
    
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None
    
    def get_backend_name(self) -> str:
        return "memory"
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
