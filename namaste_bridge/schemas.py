from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional

from .terminology.models import CodeSystem, MappingType


class CamelModel(BaseModel):
    """API models use camelCase on the wire and snake_case in Python"""
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


# Health check schema
class HealthResponse(BaseModel):
    """Health check response"""
    status: str


# ============================================================================
# Terminology schemas
# ============================================================================

class SearchResult(CamelModel):
    """One terminology search hit"""
    system: CodeSystem
    code: str
    display_name: str
    score: float = Field(..., ge=0.0, le=1.0)


class TerminologyEntryResponse(CamelModel):
    """Full terminology entry"""
    system: CodeSystem
    code: str
    display_name: str
    synonyms: List[str] = Field(default_factory=list)


class MappingResponse(CamelModel):
    """NAMASTE → ICD-11 mapping candidate"""
    icd_code: str
    icd_name: Optional[str] = None
    mapping_type: MappingType
    confidence: float


class ResolveResponse(CamelModel):
    """Resolution of a NAMASTE code to ICD-11"""
    namaste_code: str
    status: Literal["mapped", "unmapped"]
    icd_code: Optional[str] = None
    mapping_type: Optional[MappingType] = None
    confidence: Optional[float] = None
    candidates: List[MappingResponse] = Field(default_factory=list)


class SuggestionResponse(CamelModel):
    """Interactive lookup suggestion"""
    system: CodeSystem
    code: str
    display_name: str
    score: float
    mapped_from: Optional[str] = Field(None, description="NAMASTE code this ICD-11 suggestion was mapped from")
    mapping_type: Optional[MappingType] = None


class TerminologyStatsResponse(CamelModel):
    """Counts after a terminology load"""
    namaste_entries: int
    icd11_entries: int
    mappings: int


# ============================================================================
# Encounter schemas
# ============================================================================

class DiagnosisInput(CamelModel):
    """Diagnosis selected by the clinician"""
    namaste_code: str = Field(..., description="NAMASTE code, e.g. 'AAB-4'")
    notes: str = ""


class PrescriptionInput(CamelModel):
    """Prescription line; every field is required and non-empty"""
    medication: str
    dosage: str
    frequency: str
    duration: str


class EncounterBundleRequest(CamelModel):
    """Diagnosis session submitted by the doctor-facing form"""
    patient_ref: str = Field(..., description="Patient reference supplied by the identity layer")
    chief_complaint: str = ""
    clinical_notes: str = ""
    diagnoses: List[DiagnosisInput] = Field(default_factory=list)
    prescriptions: List[PrescriptionInput] = Field(default_factory=list)
    bundle_type: Literal["document", "collection"] = "document"
    supersedes: Optional[str] = Field(None, description="Id of a stored Bundle this encounter amends")
    submit: bool = Field(default=False, description="Store the Bundle after building it")


class DiagnosisResult(CamelModel):
    """Diagnosis with its resolved coding, as shown to the clinician"""
    id: str
    namaste_code: str
    namaste_name: str
    icd_code: str
    icd_name: Optional[str] = None
    mapping_type: Optional[MappingType] = None
    confidence: Optional[float] = None
    notes: str = ""
    incomplete: bool


class EncounterBundleResponse(CamelModel):
    """Built (and optionally stored) Bundle for an encounter"""
    bundle_id: str
    status: Literal["built", "created"]
    diagnoses: List[DiagnosisResult]
    incomplete_count: int
    bundle: Dict[str, Any]


# ============================================================================
# Bundle schemas
# ============================================================================

class BundleCreatedResponse(BaseModel):
    """Response for a successful Bundle upload"""
    id: str
    status: Literal["created"] = "created"
