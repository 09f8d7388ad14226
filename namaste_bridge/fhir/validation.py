"""
FHIR resource validation using the fhir.resources models.
"""
from typing import Any, Dict, Optional

from fhir.resources.composition import Composition
from fhir.resources.condition import Condition
from fhir.resources.medicationrequest import MedicationRequest
from fhir.resources.patient import Patient

FHIR_MODELS = {
    "Patient": Patient,
    "Condition": Condition,
    "MedicationRequest": MedicationRequest,
    "Composition": Composition,
}


def fhir_validation_error(resource: Dict[str, Any]) -> Optional[str]:
    """
    Validate a resource dictionary against its fhir.resources model.
    
    Args:
        resource: Resource as a JSON dictionary (with resourceType)
        
    Returns:
        None if valid, otherwise a short error description
    """
    resource_type = resource.get("resourceType")
    model_class = FHIR_MODELS.get(resource_type)
    if model_class is None:
        return f"Unsupported resourceType: {resource_type}"
    
    fields = {key: value for key, value in resource.items() if key != "resourceType"}
    try:
        model_class(**fields)
    except (ValueError, TypeError) as e:
        # pydantic errors span several lines; the first two name the field
        lines = [line.strip() for line in str(e).splitlines() if line.strip()]
        return " ".join(lines[:3]) or e.__class__.__name__
    return None
