"""
Terminology Tests

Covers:
1. Index load / lookup / search ordering
2. Mapping ranking and resolution
3. Free-text suggestions
4. Dataset loading
5. Atomic reloads under concurrent readers
"""
import json
import threading

import pytest

from namaste_bridge.config import DEFAULT_TERMINOLOGY_PATH
from namaste_bridge.exceptions import NotFound, ValidationError
from namaste_bridge.terminology.index import TerminologyIndex
from namaste_bridge.terminology.loader import load_index_from_file, parse_dataset, read_dataset
from namaste_bridge.terminology.models import CodeSystem, MappingType, Unmapped
from namaste_bridge.terminology.resolver import TerminologyResolver

from conftest import SAMPLE_ENTRIES, SAMPLE_MAPPINGS, icd, mapping, namaste


# ============================================================================
# Index: load and lookup
# ============================================================================

class TestIndexLoad:
    """Test loading and lookups."""

    def test_lookup_existing_entry(self, index):
        entry = index.lookup(CodeSystem.NAMASTE, "AY001")
        assert entry.display_name == "Vata imbalance"
        assert entry.synonyms == ("Vatavyadhi",)

    def test_lookup_is_per_system(self, index):
        with pytest.raises(NotFound):
            index.lookup(CodeSystem.ICD11, "AY001")

    def test_lookup_missing_code(self, index):
        with pytest.raises(NotFound):
            index.lookup(CodeSystem.NAMASTE, "AY404")

    def test_stats(self, index):
        assert index.stats() == {"namaste_entries": 4, "icd11_entries": 4, "mappings": 6}

    def test_new_index_is_empty(self):
        assert TerminologyIndex().is_empty

    def test_mapping_to_unknown_code_rejected(self, index):
        """A failed load leaves the previous index in place."""
        bad = SAMPLE_MAPPINGS + [mapping("AY001", "ZZ1", MappingType.EXACT, 0.9)]

        with pytest.raises(ValidationError) as exc:
            index.load(SAMPLE_ENTRIES, bad)

        assert exc.value.field == "mappings.icdCode"
        assert index.stats()["mappings"] == 6
        assert index.lookup(CodeSystem.NAMASTE, "AY001").code == "AY001"

    def test_mapping_from_unknown_namaste_code_rejected(self):
        index = TerminologyIndex()
        with pytest.raises(ValidationError) as exc:
            index.load(SAMPLE_ENTRIES, [mapping("AY404", "XM9", MappingType.EXACT, 0.9)])
        assert exc.value.field == "mappings.namasteCode"
        assert index.is_empty

    def test_duplicate_code_rejected(self):
        entries = SAMPLE_ENTRIES + [namaste("AY001", "Another name")]
        with pytest.raises(ValidationError):
            TerminologyIndex().load(entries, [])

    def test_same_code_in_both_systems_allowed(self):
        index = TerminologyIndex()
        index.load([namaste("X1", "Shared"), icd("X1", "Shared")], [])
        assert index.lookup(CodeSystem.NAMASTE, "X1").system == CodeSystem.NAMASTE
        assert index.lookup(CodeSystem.ICD11, "X1").system == CodeSystem.ICD11


# ============================================================================
# Index: search
# ============================================================================

class TestIndexSearch:
    """Test substring search ordering."""

    def test_prefix_matches_before_substring_matches(self, index):
        results = index.search(CodeSystem.NAMASTE, "vata")
        # AY001 and AY003 start with "vata"; AY002 only contains it
        assert [e.code for e in results] == ["AY001", "AY003", "AY002"]

    def test_search_is_case_insensitive(self, index):
        results = index.search(CodeSystem.ICD11, "PATTERN")
        assert [e.code for e in results] == ["SR01", "XM9"]

    def test_search_matches_synonyms(self, index):
        results = index.search(CodeSystem.ICD11, "pyr")
        assert [e.code for e in results] == ["MG26"]

    def test_search_respects_limit(self, index):
        results = index.search(CodeSystem.NAMASTE, "vata", limit=1)
        assert [e.code for e in results] == ["AY001"]

    def test_search_no_match(self, index):
        assert index.search(CodeSystem.NAMASTE, "pitta") == []

    def test_search_scores(self, index):
        hits = index.search_hits(CodeSystem.NAMASTE, "vata")
        assert [(h.entry.code, h.score) for h in hits] == [
            ("AY001", 1.0), ("AY003", 1.0), ("AY002", 0.5)
        ]

    def test_search_is_idempotent(self, index):
        first = index.search(CodeSystem.NAMASTE, "a")
        for _ in range(5):
            assert index.search(CodeSystem.NAMASTE, "a") == first

    def test_blank_query_rejected(self, index):
        with pytest.raises(ValidationError) as exc:
            index.search(CodeSystem.NAMASTE, "   ")
        assert exc.value.field == "query"

    def test_query_whitespace_is_part_of_the_match(self, index):
        # " fever" only matches inside a term, never at its start
        assert index.search(CodeSystem.ICD11, "fever") != []
        assert index.search(CodeSystem.ICD11, " fever") == []
        hits = index.search_hits(CodeSystem.NAMASTE, " fever")
        assert [(h.entry.code, h.prefix) for h in hits] == [("AY003", False)]

    def test_invalid_limit_rejected(self, index):
        with pytest.raises(ValidationError) as exc:
            index.search(CodeSystem.NAMASTE, "vata", limit=0)
        assert exc.value.field == "limit"


# ============================================================================
# Mappings and resolution
# ============================================================================

class TestResolver:
    """Test NAMASTE → ICD-11 resolution."""

    def test_exact_beats_narrower_at_equal_confidence(self, index):
        ranked = index.mappings_for("AY001")
        assert [(m.icd_code, m.mapping_type) for m in ranked] == [
            ("XM9", MappingType.EXACT),
            ("SR01", MappingType.NARROWER),
        ]

    def test_broader_beats_partial_at_equal_confidence(self, index):
        assert [m.icd_code for m in index.mappings_for("AY002")] == ["SR01", "FA20"]

    def test_full_tie_broken_by_icd_code(self, index):
        assert [m.icd_code for m in index.mappings_for("AY003")] == ["MG26", "XM9"]

    def test_higher_confidence_wins(self):
        index = TerminologyIndex()
        index.load(SAMPLE_ENTRIES, [
            mapping("AY001", "XM9", MappingType.EXACT, 0.6),
            mapping("AY001", "FA20", MappingType.PARTIAL, 0.9),
        ])
        assert TerminologyResolver(index).resolve("AY001").icd_code == "FA20"

    def test_resolve_exact_mapping(self, resolver):
        result = resolver.resolve("AY001")
        assert result.icd_code == "XM9"
        assert result.mapping_type == MappingType.EXACT
        assert result.confidence == 0.95

    def test_resolve_is_deterministic(self, resolver):
        results = {resolver.resolve("AY003").icd_code for _ in range(10)}
        assert results == {"MG26"}

    def test_resolve_unmapped_code(self, resolver):
        result = resolver.resolve("AY999")
        assert isinstance(result, Unmapped)
        assert result.namaste_code == "AY999"

    def test_resolve_unknown_code_is_unmapped(self, resolver):
        assert isinstance(resolver.resolve("NOPE"), Unmapped)

    def test_candidates(self, resolver):
        assert [m.icd_code for m in resolver.candidates("AY001")] == ["XM9", "SR01"]
        assert resolver.candidates("AY999") == []


class TestSuggest:
    """Test merged suggestions."""

    def test_suggest_merges_systems_and_mapped_targets(self, resolver):
        suggestions = resolver.suggest("vata")

        assert [(s.system.value, s.code) for s in suggestions] == [
            ("NAMASTE", "AY001"),
            ("NAMASTE", "AY003"),
            ("ICD11", "XM9"),
            ("ICD11", "SR01"),
            ("ICD11", "MG26"),
            ("NAMASTE", "AY002"),
            ("ICD11", "FA20"),
        ]

    def test_suggest_deduplicates_keeping_best_score(self, resolver):
        suggestions = resolver.suggest("vata")
        xm9 = [s for s in suggestions if s.code == "XM9"]

        assert len(xm9) == 1
        # Direct text match (1.0) beats mapped score (0.95)
        assert xm9[0].score == 1.0
        assert xm9[0].mapped_from is None

    def test_mapped_suggestion_carries_mapping_metadata(self, resolver):
        sr01 = next(s for s in resolver.suggest("vata") if s.code == "SR01")
        assert sr01.score == 0.95
        assert sr01.mapped_from == "AY001"
        assert sr01.mapping_type == MappingType.NARROWER

    def test_suggest_exact_code(self, resolver):
        suggestions = resolver.suggest("AY999")
        assert [(s.code, s.score) for s in suggestions] == [("AY999", 1.0)]

    def test_suggest_empty_text(self, resolver):
        assert resolver.suggest("") == []
        assert resolver.suggest("   ") == []

    def test_suggest_limit(self, resolver):
        assert len(resolver.suggest("vata", limit=2)) == 2

    def test_suggest_is_idempotent(self, resolver, index):
        before = index.stats()
        first = resolver.suggest("vata")
        assert resolver.suggest("vata") == first
        assert index.stats() == before


# ============================================================================
# Dataset loading
# ============================================================================

class TestLoader:
    """Test JSON dataset loading."""

    def test_packaged_dataset_loads(self):
        index = TerminologyIndex()
        dataset = load_index_from_file(index, DEFAULT_TERMINOLOGY_PATH)

        assert index.stats() == {
            "namaste_entries": 8,
            "icd11_entries": 7,
            "mappings": 10,
        }
        assert len(dataset.entries) == 15
        assert index.mappings_for("AAB-4")[0].icd_code == "FA20"

    def test_read_dataset_camel_case_fields(self, tmp_path):
        path = tmp_path / "terms.json"
        path.write_text(json.dumps({
            "entries": [
                {"system": "NAMASTE", "code": "AY001", "displayName": "Vata imbalance"},
                {"system": "ICD11", "code": "XM9", "displayName": "Vata pattern"},
            ],
            "mappings": [
                {"namasteCode": "AY001", "icdCode": "XM9", "mappingType": "EXACT", "confidence": 0.95}
            ],
        }))

        dataset = read_dataset(path)
        assert dataset.entries[0].display_name == "Vata imbalance"
        assert dataset.mappings[0].mapping_type == MappingType.EXACT

    def test_invalid_json_rejected(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ValidationError) as exc:
            read_dataset(path)
        assert exc.value.field == "dataset"

    def test_first_schema_error_reported(self):
        with pytest.raises(ValidationError) as exc:
            parse_dataset({"mappings": [
                {"namasteCode": "AY001", "icdCode": "XM9", "mappingType": "SIMILAR", "confidence": 0.5}
            ]})
        assert exc.value.field == "mappings.0.mappingType"

    def test_confidence_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            parse_dataset({"mappings": [
                {"namasteCode": "AY001", "icdCode": "XM9", "mappingType": "EXACT", "confidence": 1.5}
            ]})


# ============================================================================
# Concurrency
# ============================================================================

class TestConcurrentReload:
    """Readers always observe a complete index."""

    def test_snapshot_unchanged_by_reload(self, index):
        view = index.snapshot()
        index.load([namaste("AY001", "Vata imbalance")], [])

        assert view.lookup(CodeSystem.ICD11, "XM9").display_name == "Vata pattern"
        assert [m.icd_code for m in view.mappings_for("AY001")] == ["XM9", "SR01"]
        assert view.stats()["mappings"] == 6
        with pytest.raises(NotFound):
            index.lookup(CodeSystem.ICD11, "XM9")

    def test_load_returns_new_snapshot(self, index):
        loaded = index.load([namaste("AY001", "Vata imbalance")], [])
        assert loaded is index.snapshot()
        assert loaded.stats() == {"namaste_entries": 1, "icd11_entries": 0, "mappings": 0}

    def test_suggest_uses_one_dataset(self, reloading_index):
        suggestions = TerminologyResolver(reloading_index).suggest("vata")

        # All results come from the sample dataset that was current when
        # the call started, although XM9 and SR01 are gone by the time the
        # mapped targets are looked up
        assert [s.code for s in suggestions] == ["AY001", "AY003", "XM9", "SR01", "MG26", "AY002", "FA20"]
        assert reloading_index.stats()["icd11_entries"] == 1

    def test_pinned_resolver_keeps_its_dataset(self, reloading_index):
        resolver = TerminologyResolver(reloading_index).pinned()

        resolution = resolver.resolve("AY001")
        assert resolution.icd_code == "XM9"
        assert resolver.top_icd_display(resolution) == "Vata pattern"
        # The live index has already moved on
        assert TerminologyResolver(reloading_index).resolve("AY001").icd_code == "FA20"

    def test_readers_see_old_or_new_index(self):
        small = ([namaste("AY001", "Vata imbalance"), icd("XM9", "Vata pattern")],
                 [mapping("AY001", "XM9", MappingType.EXACT, 0.95)])
        large = (SAMPLE_ENTRIES, SAMPLE_MAPPINGS)

        index = TerminologyIndex()
        index.load(*small)
        small_stats = index.stats()
        index.load(*large)
        large_stats = index.stats()

        observed = []
        errors = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                observed.append(index.stats())
                try:
                    # AY001 exists in both datasets and always resolves to XM9
                    assert index.mappings_for("AY001")[0].icd_code == "XM9"
                except AssertionError as e:
                    errors.append(e)

        def writer():
            for i in range(200):
                index.load(*(small if i % 2 else large))
            stop.set()

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in readers:
            t.start()
        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        writer_thread.join()
        for t in readers:
            t.join()

        assert not errors
        assert observed
        assert all(stats in (small_stats, large_stats) for stats in observed)
