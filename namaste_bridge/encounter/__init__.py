"""Encounter assembly: diagnoses, prescriptions and finalized snapshots."""
from .assembler import EncounterAssembler
from .models import DiagnosisEntry, Encounter, EncounterSnapshot, PrescriptionEntry

__all__ = [
    "EncounterAssembler",
    "DiagnosisEntry",
    "Encounter",
    "EncounterSnapshot",
    "PrescriptionEntry",
]
