"""
Bundle Builder

Turns a finalized EncounterSnapshot into a FHIR Bundle document:
1. Composition (summary, first entry of a document Bundle)
2. Patient
3. One Condition per diagnosis (NAMASTE + ICD-11 dual coding)
4. One MedicationRequest per prescription

The transformation is deterministic: the same snapshot always yields the
same Bundle, including its id when none is supplied.
"""
import json
import logging
import uuid
from typing import Optional

from ..encounter.models import EncounterSnapshot
from ..exceptions import IntegrityError
from .bundler import FHIRBundler
from .document import BundleDocument
from .integrity import check_integrity
from .mappers import (
    BUNDLE_IDENTIFIER_SYSTEM,
    CompositionMapper,
    ConditionMapper,
    MedicationRequestMapper,
    PatientMapper,
    format_datetime,
    reference,
)

logger = logging.getLogger(__name__)

BUNDLE_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "urn:namaste-bridge:bundle")


def derive_bundle_id(snapshot: EncounterSnapshot) -> str:
    """Stable bundle id computed from the snapshot content."""
    canonical = json.dumps(snapshot.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
    return str(uuid.uuid5(BUNDLE_ID_NAMESPACE, canonical))


class BundleBuilder:
    """
    Builds Bundle documents from encounter snapshots.
    
    Usage:
        builder = BundleBuilder()
        bundle = builder.build(snapshot)
        document = bundle.to_document()
    """
    
    def build(
        self,
        snapshot: EncounterSnapshot,
        bundle_id: Optional[str] = None,
        bundle_type: str = "document",
    ) -> BundleDocument:
        """
        Build a referentially consistent Bundle.
        
        Args:
            snapshot: Output of EncounterAssembler.finalize
            bundle_id: Optional bundle id (derived from the snapshot if omitted)
            bundle_type: "document" (default) or "collection"
            
        Returns:
            BundleDocument
            
        Raises:
            IntegrityError: If any reference would not resolve within the
                Bundle. Nothing is returned in that case.
        """
        bundle_id = bundle_id or derive_bundle_id(snapshot)
        bundler = FHIRBundler()
        
        composition_id, composition_url = bundler.allocate("Composition")
        patient_id, patient_url = bundler.allocate("Patient")
        patient_ref = reference(patient_url, "Patient")
        
        bundler.add_resource(patient_url, PatientMapper.map(snapshot.patient_ref, patient_id))
        
        # 1. Conditions
        condition_refs = []
        incomplete_refs = []
        for diagnosis in snapshot.diagnoses:
            resource_id, full_url = bundler.allocate("Condition")
            bundler.add_resource(full_url, ConditionMapper.map(
                diagnosis, patient_ref, resource_id, snapshot.created_at
            ))
            condition_refs.append(reference(full_url, "Condition"))
            if diagnosis.incomplete:
                incomplete_refs.append(reference(full_url, "Condition"))
        
        # 2. MedicationRequests
        medication_refs = []
        for prescription in snapshot.prescriptions:
            resource_id, full_url = bundler.allocate("MedicationRequest")
            bundler.add_resource(full_url, MedicationRequestMapper.map(
                prescription, patient_ref, snapshot.practitioner_ref, resource_id, snapshot.created_at
            ))
            medication_refs.append(reference(full_url, "MedicationRequest"))
        
        # 3. Composition last, once every address it links to is known
        bundler.add_resource(composition_url, CompositionMapper.map(
            snapshot,
            composition_id,
            patient_ref,
            condition_refs,
            medication_refs,
            incomplete_refs,
            supersedes=snapshot.supersedes,
        ))
        
        missing = bundler.missing()
        if missing:
            raise IntegrityError(f"Bundle {bundle_id} has unbuilt resources: {', '.join(missing)}")
        
        bundle = bundler.build(
            bundle_id=bundle_id,
            bundle_type=bundle_type,
            timestamp=format_datetime(snapshot.created_at),
            identifier={"system": BUNDLE_IDENTIFIER_SYSTEM, "value": bundle_id},
        )
        
        try:
            check_integrity(bundle)
        except IntegrityError:
            logger.exception("Built bundle %s failed integrity check", bundle_id)
            raise
        
        if incomplete_refs:
            logger.info(
                "Bundle %s built with %d incompletely coded condition(s)",
                bundle_id, len(incomplete_refs),
            )
        return bundle
