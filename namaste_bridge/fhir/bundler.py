"""
FHIR Bundle Assembler

Allocates in-bundle addresses for resources and assembles the final Bundle
document. Addresses take the form `urn:uuid:<resourceType>-<n>`, numbered
per resource type starting at 1, and entries keep allocation order.
"""
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from .document import BundleDocument, BundleEntry


class FHIRBundler:
    """
    Assembles FHIR resources into a Bundle.
    
    Addresses are allocated before resources exist, so a resource can be
    referenced (e.g. by the Composition) before it is built, and the
    Composition can still be the first entry.
    """
    
    def __init__(self):
        """Initialize the bundler."""
        self._counters: Counter = Counter()
        self._order: List[str] = []
        self._resources: Dict[str, Dict[str, Any]] = {}
    
    def allocate(self, resource_type: str) -> Tuple[str, str]:
        """
        Reserve the next address for a resource type.
        
        Args:
            resource_type: FHIR resource type, e.g. "Condition"
            
        Returns:
            (resource_id, full_url), e.g. ("Condition-2", "urn:uuid:Condition-2")
        """
        self._counters[resource_type] += 1
        resource_id = f"{resource_type}-{self._counters[resource_type]}"
        full_url = f"urn:uuid:{resource_id}"
        self._order.append(full_url)
        return resource_id, full_url
    
    def add_resource(self, full_url: str, resource: Dict[str, Any]) -> None:
        """
        Attach a built resource to a previously allocated address.
        
        Args:
            full_url: Address returned by allocate()
            resource: Resource dictionary
        """
        if full_url not in self._order:
            raise KeyError(f"Address was never allocated: {full_url}")
        self._resources[full_url] = resource
    
    def missing(self) -> List[str]:
        """Allocated addresses that have no resource yet."""
        return [url for url in self._order if url not in self._resources]
    
    def build(self, bundle_id: str, bundle_type: str, timestamp: Optional[str] = None,
              identifier: Optional[Dict[str, str]] = None) -> BundleDocument:
        """
        Build the final Bundle document.
        
        Args:
            bundle_id: Bundle id
            bundle_type: "document" or "collection"
            timestamp: Creation time (FHIR instant)
            identifier: Optional Bundle.identifier
            
        Returns:
            BundleDocument with one entry per allocated address
        """
        fields: Dict[str, Any] = {
            "resourceType": "Bundle",
            "id": bundle_id,
            "type": bundle_type,
        }
        if identifier:
            fields["identifier"] = identifier
        if timestamp:
            fields["timestamp"] = timestamp
        fields["entry"] = [
            BundleEntry(fullUrl=url, resource=self._resources[url])
            for url in self._order
            if url in self._resources
        ]
        return BundleDocument(**fields)
    
    @property
    def resource_count(self) -> int:
        """Number of resources attached so far."""
        return len(self._resources)
