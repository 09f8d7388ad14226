"""
FHIR Bundle Module

Converts finalized encounters into FHIR R5 Bundle documents, validated
with the fhir.resources library.

Components:
- document: Structural type for Bundle JSON (upload boundary)
- mappers: Individual resource mappers (Patient, Condition, ...)
- bundler: Address allocation and Bundle assembly
- builder: Encounter → Bundle orchestration
- integrity: Reference checks shared by the builder and the store
"""
from .builder import BundleBuilder
from .bundler import FHIRBundler
from .document import BundleDocument, BundleEntry
from .integrity import IntegrityViolation, check_integrity, find_integrity_violation

__all__ = [
    "BundleBuilder",
    "FHIRBundler",
    "BundleDocument",
    "BundleEntry",
    "IntegrityViolation",
    "check_integrity",
    "find_integrity_violation",
]
