"""
Bundle Store

Validates and persists Bundle documents by id. Storage is append-only:
there is no update or delete, and an amendment is a new Bundle whose
Composition declares which Bundle it replaces.
"""
import logging
from typing import Any, Dict

from ..exceptions import ConflictError, NotFound, ValidationError
from ..fhir.document import BundleDocument
from ..fhir.integrity import find_integrity_violation
from ..fhir.mappers import superseded_bundle_ids
from ..fhir.validation import fhir_validation_error
from .base import KeyValueStore

logger = logging.getLogger(__name__)


class BundleStore:
    """
    Upload and retrieval of Bundles on top of a KeyValueStore.
    
    Usage:
        store = BundleStore(InMemoryKeyValueStore())
        bundle_id = store.upload(bundle)
        same = store.get(bundle_id)
    """
    
    def __init__(self, backend: KeyValueStore):
        self.backend = backend
    
    def validate(self, bundle: BundleDocument) -> None:
        """
        Run every upload check without storing.
        
        Raises:
            ValidationError: With the first violation found (integrity,
                FHIR resource shape, or an unknown superseded Bundle)
        """
        violation = find_integrity_violation(bundle)
        if violation is not None:
            raise ValidationError(violation.message, field=violation.path)
        
        for i, entry in enumerate(bundle.entry):
            error = fhir_validation_error(entry.resource)
            if error:
                raise ValidationError(error, field=f"entry[{i}].resource")
        
        for superseded in superseded_bundle_ids(bundle.composition):
            if superseded == bundle.id:
                raise ValidationError("A Bundle cannot replace itself", field="relatesTo")
            if self.backend.get(superseded) is None:
                raise ValidationError(f"Superseded bundle not found: {superseded}", field="relatesTo")
    
    def upload(self, bundle: BundleDocument) -> str:
        """
        Validate and persist a Bundle.
        
        Args:
            bundle: Bundle document
            
        Returns:
            The stored Bundle id
            
        Raises:
            ValidationError: If the Bundle fails validation
            ConflictError: If a Bundle with this id already exists
        """
        self.validate(bundle)
        try:
            self.backend.put(bundle.id, bundle.to_document())
        except ConflictError:
            logger.warning("Rejected duplicate upload of bundle %s", bundle.id)
            raise
        
        logger.info(
            "Stored bundle %s (%s, %d resources) via %s backend",
            bundle.id, bundle.type, len(bundle.entry), self.backend.get_backend_name(),
        )
        return bundle.id
    
    def get_document(self, bundle_id: str) -> Dict[str, Any]:
        """
        Return the stored Bundle JSON exactly as it was stored.
        
        Raises:
            NotFound: If no Bundle has this id
        """
        document = self.backend.get(bundle_id)
        if document is None:
            raise NotFound(f"Bundle not found: {bundle_id}")
        return document
    
    def get(self, bundle_id: str) -> BundleDocument:
        """
        Fetch a stored Bundle.
        
        Raises:
            NotFound: If no Bundle has this id
        """
        return BundleDocument.model_validate(self.get_document(bundle_id))
