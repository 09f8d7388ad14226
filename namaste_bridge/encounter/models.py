"""
Encounter models for a single diagnosis session.

An Encounter is mutable while the doctor adds diagnoses and prescriptions.
`EncounterAssembler.finalize` freezes it into an EncounterSnapshot, which is
the only input the Bundle Builder accepts.
"""
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from ..terminology.models import MappingType


def utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class DiagnosisEntry(BaseModel):
    """
    A NAMASTE diagnosis with its resolved ICD-11 code.
    
    An empty icd_code means the NAMASTE code had no mapping; such an entry
    is incomplete and is flagged downstream, never dropped.
    """
    id: str
    namaste_code: str
    namaste_name: str
    icd_code: str = ""
    icd_name: Optional[str] = None
    mapping_type: Optional[MappingType] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    notes: str = ""
    
    model_config = {"frozen": True}
    
    @property
    def incomplete(self) -> bool:
        """True when no ICD-11 code could be resolved."""
        return not self.icd_code


class PrescriptionEntry(BaseModel):
    """Free-text prescription line; no terminology coding."""
    id: str
    medication: str
    dosage: str
    frequency: str
    duration: str
    
    model_config = {"frozen": True}


class Encounter(BaseModel):
    """Diagnosis session being assembled."""
    patient_ref: str
    practitioner_ref: str
    chief_complaint: str = ""
    clinical_notes: str = ""
    diagnoses: List[DiagnosisEntry] = Field(default_factory=list)
    prescriptions: List[PrescriptionEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class EncounterSnapshot(BaseModel):
    """Read-only, finalized encounter."""
    patient_ref: str
    practitioner_ref: str
    chief_complaint: str
    clinical_notes: str
    diagnoses: Tuple[DiagnosisEntry, ...]
    prescriptions: Tuple[PrescriptionEntry, ...]
    created_at: datetime
    supersedes: Optional[str] = None  # id of a previously stored Bundle this one amends
    
    model_config = {"frozen": True}
    
    @property
    def incomplete_diagnoses(self) -> List[DiagnosisEntry]:
        return [d for d in self.diagnoses if d.incomplete]
