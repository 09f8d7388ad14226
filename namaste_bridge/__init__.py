"""NAMASTE ↔ ICD-11 terminology resolution and FHIR Bundle service."""

__version__ = "1.0.0"
