"""
Shared fixtures: a small NAMASTE / ICD-11 dataset and the components built on it.

Mappings are chosen to exercise every ranking rule:
- AY001: same confidence, EXACT beats NARROWER
- AY002: same confidence, BROADER beats PARTIAL
- AY003: same confidence and type, lower ICD code wins
- AY999: no mapping at all
"""
import pytest

from namaste_bridge.encounter.assembler import EncounterAssembler
from namaste_bridge.fhir.builder import BundleBuilder
from namaste_bridge.terminology.index import TerminologyIndex
from namaste_bridge.terminology.models import CodeMapping, CodeSystem, MappingType, TerminologyEntry
from namaste_bridge.terminology.resolver import TerminologyResolver


def namaste(code, name, *synonyms):
    return TerminologyEntry(system=CodeSystem.NAMASTE, code=code, display_name=name, synonyms=synonyms)


def icd(code, name, *synonyms):
    return TerminologyEntry(system=CodeSystem.ICD11, code=code, display_name=name, synonyms=synonyms)


def mapping(namaste_code, icd_code, mapping_type, confidence):
    return CodeMapping(
        namaste_code=namaste_code,
        icd_code=icd_code,
        mapping_type=mapping_type,
        confidence=confidence,
    )


SAMPLE_ENTRIES = [
    namaste("AY001", "Vata imbalance", "Vatavyadhi"),
    namaste("AY002", "Amavata", "Rheumatic vata"),
    namaste("AY003", "Vataja jwara", "Vata fever"),
    namaste("AY999", "Kaphaja kasa"),
    icd("XM9", "Vata pattern"),
    icd("SR01", "Wind pattern"),
    icd("FA20", "Rheumatoid arthritis"),
    icd("MG26", "Fever of unknown origin", "Pyrexia"),
]

SAMPLE_MAPPINGS = [
    mapping("AY001", "SR01", MappingType.NARROWER, 0.95),
    mapping("AY001", "XM9", MappingType.EXACT, 0.95),
    mapping("AY002", "FA20", MappingType.PARTIAL, 0.7),
    mapping("AY002", "SR01", MappingType.BROADER, 0.7),
    mapping("AY003", "XM9", MappingType.BROADER, 0.8),
    mapping("AY003", "MG26", MappingType.BROADER, 0.8),
]


@pytest.fixture
def index():
    """Terminology index loaded with the sample dataset"""
    idx = TerminologyIndex()
    idx.load(SAMPLE_ENTRIES, SAMPLE_MAPPINGS)
    return idx


@pytest.fixture
def resolver(index):
    return TerminologyResolver(index)


@pytest.fixture
def assembler(resolver):
    return EncounterAssembler(resolver)


@pytest.fixture
def builder():
    return BundleBuilder()


@pytest.fixture
def mapped_snapshot(assembler):
    """Finalized encounter: one mapped diagnosis (AY001) and one prescription"""
    encounter = assembler.start("patient-42", "practitioner-7", "Joint pain and stiffness")
    assembler.add_diagnosis(encounter, "AY001", "Worse in the mornings")
    assembler.add_prescription(encounter, "Ashwagandha churna", "3 g", "twice daily", "30 days")
    return assembler.finalize(encounter)


@pytest.fixture
def unmapped_snapshot(assembler):
    """Finalized encounter with a single diagnosis that has no ICD-11 mapping"""
    encounter = assembler.start("patient-42", "practitioner-7", "Productive cough")
    assembler.add_diagnosis(encounter, "AY999")
    return assembler.finalize(encounter)


# Dataset that replaces the sample one mid-operation: AY001 survives but
# maps elsewhere, and XM9 / SR01 are gone
REPLACEMENT_ENTRIES = [
    namaste("AY001", "Vata imbalance"),
    icd("FA20", "Rheumatoid arthritis"),
]
REPLACEMENT_MAPPINGS = [mapping("AY001", "FA20", MappingType.PARTIAL, 0.5)]


class ReloadingIndex(TerminologyIndex):
    """Loads the replacement dataset right after handing out its first snapshot"""

    def __init__(self):
        super().__init__()
        self.load(SAMPLE_ENTRIES, SAMPLE_MAPPINGS)
        self.reloaded = False

    def snapshot(self):
        view = super().snapshot()
        if not self.reloaded:
            self.reloaded = True
            self.load(REPLACEMENT_ENTRIES, REPLACEMENT_MAPPINGS)
        return view


@pytest.fixture
def reloading_index():
    return ReloadingIndex()
