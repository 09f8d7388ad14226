"""
SQLAlchemy-backed key-value store.

Conflicts are detected by the primary key of the `bundles` table, so two
processes inserting the same id cannot both succeed.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError as SQLIntegrityError, OperationalError
from sqlalchemy.orm import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..exceptions import ConflictError
from ..models import StoredBundle
from .base import KeyValueStore

logger = logging.getLogger(__name__)


class SQLAlchemyKeyValueStore(KeyValueStore):
    """Stores Bundle documents in the `bundles` table."""
    
    def __init__(self, db: Session):
        """
        Initialize the store.
        
        Args:
            db: Database session (one per request)
        """
        self.db = db
    
    # Transient lock errors (e.g. SQLite "database is locked") are retried
    @retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=0.1, max=2),
        reraise=True,
    )
    def put(self, key: str, value: Dict[str, Any]) -> None:
        """Insert a new row; commits before returning."""
        self.db.add(StoredBundle(id=key, document=value))
        try:
            self.db.commit()
        except SQLIntegrityError as e:
            self.db.rollback()
            raise ConflictError(key) from e
        except OperationalError:
            self.db.rollback()
            logger.warning("Transient database error storing bundle %s", key)
            raise
    
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        row = self.db.get(StoredBundle, key)
        return row.document if row is not None else None
    
    def get_backend_name(self) -> str:
        return "sql"
