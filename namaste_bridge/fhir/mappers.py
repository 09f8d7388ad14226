"""
FHIR Resource Mappers

Maps a finalized encounter to FHIR R5 resource dictionaries. Each mapper
builds the JSON shape directly and checks it against the fhir.resources
model, so the Bundle keeps exactly the JSON that was validated.

Mappings:
- patient_ref → Patient
- DiagnosisEntry → Condition (NAMASTE + ICD-11 dual coding)
- PrescriptionEntry → MedicationRequest
- EncounterSnapshot → Composition (document summary)
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..encounter.models import DiagnosisEntry, EncounterSnapshot, PrescriptionEntry
from ..exceptions import IntegrityError
from ..terminology.models import CodeSystem
from .validation import fhir_validation_error

PATIENT_IDENTIFIER_SYSTEM = "urn:namaste-bridge:patient"
PRACTITIONER_IDENTIFIER_SYSTEM = "urn:namaste-bridge:practitioner"
BUNDLE_IDENTIFIER_SYSTEM = "urn:namaste-bridge:bundle"

EXTENSION_BASE = "http://namaste-bridge.org/fhir/StructureDefinition"
INCOMPLETE_CODING_URL = f"{EXTENSION_BASE}/incomplete-coding"
MAPPING_TYPE_URL = f"{EXTENSION_BASE}/mapping-type"
MAPPING_CONFIDENCE_URL = f"{EXTENSION_BASE}/mapping-confidence"

SECTION_CODE_SYSTEM = "http://namaste-bridge.org/fhir/CodeSystem/composition-section"
INCOMPLETE_CODING_CODE = "incomplete-coding"

LOINC = "http://loinc.org"


def format_datetime(value: datetime) -> str:
    """FHIR dateTime with second precision."""
    return value.replace(microsecond=0).isoformat()


def reference(full_url: str, resource_type: str) -> Dict[str, str]:
    """Literal reference to a resource in the same Bundle."""
    return {"reference": full_url, "type": resource_type}


def logical_reference(system: str, value: str, resource_type: str) -> Dict[str, Any]:
    """Reference by identifier to something outside the Bundle."""
    return {"identifier": {"system": system, "value": value}, "type": resource_type}


def _validated(resource: Dict[str, Any]) -> Dict[str, Any]:
    error = fhir_validation_error(resource)
    if error:
        raise IntegrityError(f"Generated {resource['resourceType']} is not valid FHIR: {error}")
    return resource


class PatientMapper:
    """Maps the caller-supplied patient reference to a FHIR Patient."""

    @staticmethod
    def map(patient_ref: str, resource_id: str) -> Dict[str, Any]:
        """
        Create a Patient resource identified by the external patient reference.

        Args:
            patient_ref: Patient reference from the identity layer
            resource_id: In-bundle resource id

        Returns:
            Patient resource dictionary
        """
        return _validated({
            "resourceType": "Patient",
            "id": resource_id,
            "identifier": [{
                "system": PATIENT_IDENTIFIER_SYSTEM,
                "value": patient_ref
            }],
        })


class ConditionMapper:
    """Maps a DiagnosisEntry to a dual-coded FHIR Condition."""

    @staticmethod
    def codings(diagnosis: DiagnosisEntry) -> List[Dict[str, Any]]:
        """
        Parallel codings for one clinical statement.

        The NAMASTE coding is always present. The ICD-11 coding is added
        only when the diagnosis was resolved, and carries the mapping type
        and confidence as extensions.
        """
        codings = [{
            "system": CodeSystem.NAMASTE.uri,
            "code": diagnosis.namaste_code,
            "display": diagnosis.namaste_name,
        }]

        if not diagnosis.incomplete:
            icd_coding: Dict[str, Any] = {
                "system": CodeSystem.ICD11.uri,
                "code": diagnosis.icd_code,
            }
            if diagnosis.icd_name:
                icd_coding["display"] = diagnosis.icd_name

            extensions = []
            if diagnosis.mapping_type is not None:
                extensions.append({"url": MAPPING_TYPE_URL, "valueCode": diagnosis.mapping_type.value})
            if diagnosis.confidence is not None:
                extensions.append({"url": MAPPING_CONFIDENCE_URL, "valueDecimal": diagnosis.confidence})
            if extensions:
                icd_coding["extension"] = extensions

            codings.append(icd_coding)

        return codings

    @staticmethod
    def map(
        diagnosis: DiagnosisEntry,
        patient_reference: Dict[str, str],
        resource_id: str,
        recorded: datetime,
    ) -> Dict[str, Any]:
        """
        Convert a diagnosis to a FHIR Condition resource.

        Args:
            diagnosis: Diagnosis from the encounter
            patient_reference: Reference to the Patient entry
            resource_id: In-bundle resource id
            recorded: Encounter creation time

        Returns:
            Condition resource dictionary
        """
        condition_dict = {
            "resourceType": "Condition",
            "id": resource_id,
            "clinicalStatus": {
                "coding": [{
                    "system": "http://terminology.hl7.org/CodeSystem/condition-clinical",
                    "code": "active"
                }]
            },
            "verificationStatus": {
                "coding": [{
                    "system": "http://terminology.hl7.org/CodeSystem/condition-ver-status",
                    "code": "confirmed"
                }]
            },
            "category": [{
                "coding": [{
                    "system": "http://terminology.hl7.org/CodeSystem/condition-category",
                    "code": "encounter-diagnosis"
                }]
            }],
            "code": {
                "coding": ConditionMapper.codings(diagnosis),
                "text": diagnosis.namaste_name
            },
            "subject": dict(patient_reference),
            "recordedDate": format_datetime(recorded),
        }

        if diagnosis.notes:
            condition_dict["note"] = [{"text": diagnosis.notes}]

        return _validated(condition_dict)


class MedicationRequestMapper:
    """Maps a PrescriptionEntry to a FHIR MedicationRequest."""

    @staticmethod
    def map(
        prescription: PrescriptionEntry,
        patient_reference: Dict[str, str],
        practitioner_ref: str,
        resource_id: str,
        authored: datetime,
    ) -> Dict[str, Any]:
        """
        Convert a prescription to a FHIR MedicationRequest resource.

        Medication, dosage, frequency and duration are free text, so they
        go into CodeableConcept.text and Dosage.text rather than codings.
        """
        med_dict = {
            "resourceType": "MedicationRequest",
            "id": resource_id,
            "status": "active",
            "intent": "order",
            # FHIR R5 CodeableReference
            "medication": {
                "concept": {"text": prescription.medication}
            },
            "subject": dict(patient_reference),
            "authoredOn": format_datetime(authored),
            "requester": logical_reference(
                PRACTITIONER_IDENTIFIER_SYSTEM, practitioner_ref, "Practitioner"
            ),
            "dosageInstruction": [{
                "text": f"{prescription.dosage}, {prescription.frequency} for {prescription.duration}",
                "timing": {
                    "code": {"text": prescription.frequency}
                },
            }],
        }

        return _validated(med_dict)


class CompositionMapper:
    """Maps an EncounterSnapshot to the summary Composition of a document Bundle."""

    @staticmethod
    def map(
        snapshot: EncounterSnapshot,
        resource_id: str,
        patient_reference: Dict[str, str],
        condition_references: List[Dict[str, str]],
        medication_references: List[Dict[str, str]],
        incomplete_references: List[Dict[str, str]],
        supersedes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Build the Composition linking every other resource in the Bundle.

        Args:
            snapshot: Finalized encounter
            resource_id: In-bundle resource id
            patient_reference: Reference to the Patient entry
            condition_references: References to all Condition entries
            medication_references: References to all MedicationRequest entries
            incomplete_references: References to Conditions without ICD-11 coding
            supersedes: Optional id of the Bundle this one replaces

        Returns:
            Composition resource dictionary
        """
        sections = [{
            "title": "Diagnoses",
            "code": {"coding": [{"system": LOINC, "code": "29548-5", "display": "Diagnosis"}]},
            "entry": [dict(ref) for ref in condition_references],
        }]

        if medication_references:
            sections.append({
                "title": "Prescriptions",
                "code": {"coding": [{"system": LOINC, "code": "10160-0", "display": "History of Medication use"}]},
                "entry": [dict(ref) for ref in medication_references],
            })

        if incomplete_references:
            sections.append({
                "title": "Incomplete coding",
                "code": {"coding": [{"system": SECTION_CODE_SYSTEM, "code": INCOMPLETE_CODING_CODE}]},
                "entry": [dict(ref) for ref in incomplete_references],
            })

        notes = [{"text": f"Chief complaint: {snapshot.chief_complaint}"}]
        if snapshot.clinical_notes:
            notes.append({"text": snapshot.clinical_notes})

        composition_dict = {
            "resourceType": "Composition",
            "id": resource_id,
            "status": "final",
            "type": {
                "coding": [{"system": LOINC, "code": "11488-4", "display": "Consult note"}]
            },
            "subject": [dict(patient_reference)],
            "date": format_datetime(snapshot.created_at),
            "author": [logical_reference(
                PRACTITIONER_IDENTIFIER_SYSTEM, snapshot.practitioner_ref, "Practitioner"
            )],
            "title": "Encounter diagnosis summary",
            "note": notes,
            "section": sections,
        }

        if incomplete_references:
            composition_dict["extension"] = [
                {"url": INCOMPLETE_CODING_URL, "valueReference": dict(ref)}
                for ref in incomplete_references
            ]

        if supersedes:
            composition_dict["relatesTo"] = [{
                "type": "replaces",
                "resourceReference": logical_reference(BUNDLE_IDENTIFIER_SYSTEM, supersedes, "Bundle"),
            }]

        return _validated(composition_dict)


def incomplete_coding_references(composition: Optional[Dict[str, Any]]) -> List[str]:
    """fullUrls of Conditions flagged as incompletely coded by a Composition."""
    if not composition:
        return []
    return [
        extension["valueReference"]["reference"]
        for extension in composition.get("extension", [])
        if extension.get("url") == INCOMPLETE_CODING_URL and "valueReference" in extension
    ]


def superseded_bundle_ids(composition: Optional[Dict[str, Any]]) -> List[str]:
    """Ids of Bundles that a Composition declares it replaces."""
    if not composition:
        return []
    ids = []
    for relation in composition.get("relatesTo", []):
        identifier = relation.get("resourceReference", {}).get("identifier", {})
        if relation.get("type") == "replaces" and identifier.get("system") == BUNDLE_IDENTIFIER_SYSTEM:
            ids.append(identifier.get("value"))
    return ids
