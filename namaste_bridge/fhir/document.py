"""
Structural type for Bundle JSON documents.

Uploaded payloads are validated into a BundleDocument before anything else
looks at them. Fields this service does not interpret (meta, identifier,
entry.search, ...) are kept as-is, so a stored Bundle can be returned
verbatim.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

ALLOWED_RESOURCE_TYPES = ("Patient", "Condition", "MedicationRequest", "Composition")


class BundleEntry(BaseModel):
    """One Bundle entry: a resource and its in-bundle address."""
    full_url: str = Field(..., min_length=1, alias="fullUrl")
    resource: Dict[str, Any]
    
    model_config = {"extra": "allow", "populate_by_name": True}
    
    @field_validator("resource")
    @classmethod
    def resource_has_type(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(value.get("resourceType"), str) or not value["resourceType"]:
            raise ValueError("resource.resourceType is required")
        return value
    
    @property
    def resource_type(self) -> str:
        return self.resource["resourceType"]


class BundleDocument(BaseModel):
    """
    FHIR Bundle document.
    
    Maps to:
    - resource_type → Bundle.resourceType (always "Bundle")
    - id → Bundle.id (also the storage key)
    - type → Bundle.type ("document" or "collection")
    - timestamp → Bundle.timestamp (creation time)
    - entry → Bundle.entry
    """
    resource_type: Literal["Bundle"] = Field(..., alias="resourceType")
    id: str = Field(..., pattern=r"^[A-Za-z0-9\-.]{1,64}$")
    type: Literal["document", "collection"]
    timestamp: Optional[str] = None
    entry: List[BundleEntry] = Field(..., min_length=1)
    
    model_config = {"extra": "allow", "populate_by_name": True}
    
    @property
    def resources(self) -> List[Dict[str, Any]]:
        return [entry.resource for entry in self.entry]
    
    @property
    def composition(self) -> Optional[Dict[str, Any]]:
        """The first Composition resource, if any."""
        for entry in self.entry:
            if entry.resource_type == "Composition":
                return entry.resource
        return None
    
    def get_resource_types(self) -> List[str]:
        """Get list of resource types in the bundle."""
        return [entry.resource_type for entry in self.entry]
    
    def to_document(self) -> Dict[str, Any]:
        """JSON-ready dictionary; unset optional fields are omitted (FHIR JSON has no nulls)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
