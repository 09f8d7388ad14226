"""
Encounter Assembler

Builds an encounter from doctor input, attaching ICD-11 codes to each
NAMASTE diagnosis through the Terminology Resolver.
"""
import logging
from typing import Optional

from ..exceptions import NotFound, ValidationError
from ..terminology.models import CodeSystem, Unmapped
from ..terminology.resolver import TerminologyResolver
from .models import DiagnosisEntry, Encounter, EncounterSnapshot, PrescriptionEntry

logger = logging.getLogger(__name__)


def _require(value: Optional[str], field: str) -> str:
    """Return the stripped value or raise ValidationError naming the field."""
    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be empty", field=field)
    return value.strip()


class EncounterAssembler:
    """
    Assembles encounters for the Bundle Builder.
    
    Usage:
        assembler = EncounterAssembler(resolver)
        encounter = assembler.start("patient-42", "practitioner-7", "Joint pain")
        entry = assembler.add_diagnosis(encounter, "AAB-4", "Morning stiffness")
        assembler.add_prescription(encounter, "Simhanada Guggulu", "500 mg", "BD", "14 days")
        snapshot = assembler.finalize(encounter)
    """
    
    def __init__(self, resolver: TerminologyResolver):
        self.resolver = resolver
    
    def start(
        self,
        patient_ref: str,
        practitioner_ref: str,
        chief_complaint: str = "",
        clinical_notes: str = "",
    ) -> Encounter:
        """Open a new encounter for an authenticated practitioner."""
        return Encounter(
            patient_ref=_require(patient_ref, "patientRef"),
            practitioner_ref=_require(practitioner_ref, "practitionerRef"),
            chief_complaint=(chief_complaint or "").strip(),
            clinical_notes=(clinical_notes or "").strip(),
        )
    
    def add_diagnosis(self, encounter: Encounter, namaste_code: str, notes: str = "") -> DiagnosisEntry:
        """
        Resolve a NAMASTE code and append it as a diagnosis.
        
        Args:
            encounter: Encounter being assembled
            namaste_code: NAMASTE code chosen by the clinician
            notes: Free-text diagnosis notes
            
        Returns:
            The new DiagnosisEntry, with mapping type and confidence so the
            caller can show them. icd_code is empty if the code is unmapped.
            
        Raises:
            ValidationError: If the code is blank or not a known NAMASTE code
        """
        code = _require(namaste_code, "namasteCode")
        # One dataset for the lookup, the resolution and the display name
        resolver = self.resolver.pinned()
        try:
            namaste_entry = resolver.index.lookup(CodeSystem.NAMASTE, code)
        except NotFound as e:
            raise ValidationError(f"Unknown NAMASTE code: {code}", field="namasteCode") from e
        
        resolution = resolver.resolve(code)
        entry_id = f"dx-{len(encounter.diagnoses) + 1}"
        
        if isinstance(resolution, Unmapped):
            logger.info("NAMASTE code %s has no ICD-11 mapping; diagnosis flagged incomplete", code)
            entry = DiagnosisEntry(
                id=entry_id,
                namaste_code=namaste_entry.code,
                namaste_name=namaste_entry.display_name,
                notes=(notes or "").strip(),
            )
        else:
            entry = DiagnosisEntry(
                id=entry_id,
                namaste_code=namaste_entry.code,
                namaste_name=namaste_entry.display_name,
                icd_code=resolution.icd_code,
                icd_name=resolver.top_icd_display(resolution),
                mapping_type=resolution.mapping_type,
                confidence=resolution.confidence,
                notes=(notes or "").strip(),
            )
        
        encounter.diagnoses.append(entry)
        return entry
    
    def add_prescription(
        self,
        encounter: Encounter,
        medication: str,
        dosage: str,
        frequency: str,
        duration: str,
    ) -> PrescriptionEntry:
        """
        Append a prescription. Every field is required.
        
        Raises:
            ValidationError: Naming the first empty field
        """
        entry = PrescriptionEntry(
            id=f"rx-{len(encounter.prescriptions) + 1}",
            medication=_require(medication, "medication"),
            dosage=_require(dosage, "dosage"),
            frequency=_require(frequency, "frequency"),
            duration=_require(duration, "duration"),
        )
        encounter.prescriptions.append(entry)
        return entry
    
    def finalize(self, encounter: Encounter, supersedes: Optional[str] = None) -> EncounterSnapshot:
        """
        Freeze the encounter for bundle building.
        
        Args:
            encounter: Encounter being assembled
            supersedes: Optional id of a stored Bundle that this one amends
            
        Raises:
            ValidationError: If the chief complaint is empty or there are
                no diagnoses
        """
        chief_complaint = _require(encounter.chief_complaint, "chiefComplaint")
        if not encounter.diagnoses:
            raise ValidationError("At least one diagnosis is required", field="diagnoses")
        
        return EncounterSnapshot(
            patient_ref=encounter.patient_ref,
            practitioner_ref=encounter.practitioner_ref,
            chief_complaint=chief_complaint,
            clinical_notes=encounter.clinical_notes,
            diagnoses=tuple(encounter.diagnoses),
            prescriptions=tuple(encounter.prescriptions),
            created_at=encounter.created_at,
            supersedes=supersedes.strip() if supersedes and supersedes.strip() else None,
        )
