"""
Terminology models for NAMASTE and ICD-11 code entries.

These models are immutable once created: the index hands out the same
instances to every reader, so nothing downstream may mutate them.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, Field


class CodeSystem(str, Enum):
    """Supported code systems"""
    NAMASTE = "NAMASTE"
    ICD11 = "ICD11"

    @property
    def uri(self) -> str:
        """Canonical system URI used in FHIR codings."""
        return SYSTEM_URIS[self]


SYSTEM_URIS = {
    CodeSystem.NAMASTE: "http://namaste.ayush.gov.in/fhir/CodeSystem/namaste",
    CodeSystem.ICD11: "http://id.who.int/icd/release/11/mms",
}


class MappingType(str, Enum):
    """Equivalence of a NAMASTE concept to its ICD-11 target"""
    EXACT = "EXACT"
    NARROWER = "NARROWER"
    BROADER = "BROADER"
    PARTIAL = "PARTIAL"

    @property
    def rank(self) -> int:
        """Lower rank sorts first (EXACT is the strongest mapping)."""
        return MAPPING_TYPE_RANK[self]


MAPPING_TYPE_RANK = {
    MappingType.EXACT: 0,
    MappingType.NARROWER: 1,
    MappingType.BROADER: 2,
    MappingType.PARTIAL: 3,
}


class TerminologyEntry(BaseModel):
    """A single code in either the NAMASTE or ICD-11 code system."""
    system: CodeSystem
    code: str = Field(..., min_length=1, description="Code, unique within its system")
    display_name: str = Field(..., min_length=1, alias="displayName")
    synonyms: Tuple[str, ...] = Field(default=(), description="Alternative terms, in source order")

    model_config = {"frozen": True, "populate_by_name": True, "extra": "forbid"}

    @property
    def terms(self) -> List[str]:
        """Display name followed by synonyms."""
        return [self.display_name, *self.synonyms]


class CodeMapping(BaseModel):
    """Cross-mapping from a NAMASTE code to an ICD-11 code."""
    namaste_code: str = Field(..., min_length=1, alias="namasteCode")
    icd_code: str = Field(..., min_length=1, alias="icdCode")
    mapping_type: MappingType = Field(..., alias="mappingType")
    confidence: float = Field(..., ge=0.0, le=1.0)

    model_config = {"frozen": True, "populate_by_name": True, "extra": "forbid"}

    def sort_key(self) -> Tuple[float, int, str]:
        """Ordering used for ranking: confidence desc, type rank, then code."""
        return (-self.confidence, self.mapping_type.rank, self.icd_code)


@dataclass(frozen=True)
class Unmapped:
    """
    Resolution outcome for a NAMASTE code with no ICD-11 mapping.

    Callers must leave the ICD code blank rather than guessing one.
    """
    namaste_code: str


Resolution = Union[CodeMapping, Unmapped]


@dataclass(frozen=True)
class SearchHit:
    """An entry matched by a text search."""
    entry: TerminologyEntry
    score: float
    prefix: bool


@dataclass(frozen=True)
class Suggestion:
    """One row of an interactive terminology lookup."""
    system: CodeSystem
    code: str
    display_name: str
    score: float
    mapped_from: Optional[str] = None
    mapping_type: Optional[MappingType] = None


class TerminologyDataset(BaseModel):
    """On-disk / over-the-wire shape of a terminology load."""
    entries: List[TerminologyEntry] = Field(default_factory=list)
    mappings: List[CodeMapping] = Field(default_factory=list)
