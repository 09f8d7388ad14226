"""
Terminology Module

NAMASTE and ICD-11 code entries, their cross-mapping, and resolution.

Components:
- models: Entries, mappings and resolution outcomes
- index: Thread-safe in-memory index (lookup, search, mappings)
- resolver: NAMASTE → ICD-11 resolution and free-text suggestions
- loader: JSON dataset loading
"""
from .index import IndexSnapshot, TerminologyIndex
from .resolver import TerminologyResolver
from .models import (
    CodeMapping,
    CodeSystem,
    MappingType,
    Suggestion,
    TerminologyDataset,
    TerminologyEntry,
    Unmapped,
)

__all__ = [
    "IndexSnapshot",
    "TerminologyIndex",
    "TerminologyResolver",
    "CodeMapping",
    "CodeSystem",
    "MappingType",
    "Suggestion",
    "TerminologyDataset",
    "TerminologyEntry",
    "Unmapped",
]
