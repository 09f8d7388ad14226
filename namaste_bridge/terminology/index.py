"""
In-memory terminology index.

Holds NAMASTE and ICD-11 entries plus the NAMASTE → ICD-11 cross-mapping.
Readers work against an immutable IndexSnapshot; `load` builds a complete
new snapshot and swaps the reference under a writer lock, so a reader sees
either the whole old index or the whole new one.

An operation that reads the index more than once should take one view with
`snapshot()` and do all of its reads against it.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from ..exceptions import NotFound, ValidationError
from .models import CodeMapping, CodeSystem, SearchHit, TerminologyEntry

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 20

PREFIX_SCORE = 1.0
SUBSTRING_SCORE = 0.5


@dataclass(frozen=True)
class IndexSnapshot:
    """
    Read-only view of one loaded dataset.

    Stays valid and unchanged after the index is reloaded.
    """
    entries: Dict[CodeSystem, Dict[str, TerminologyEntry]] = field(
        default_factory=lambda: {system: {} for system in CodeSystem}
    )
    # Pre-sorted per NAMASTE code
    mappings: Dict[str, Tuple[CodeMapping, ...]] = field(default_factory=dict)
    # (lowercased terms, entry) sorted by code, per system
    search_rows: Dict[CodeSystem, Tuple[Tuple[Tuple[str, ...], TerminologyEntry], ...]] = field(
        default_factory=lambda: {system: () for system in CodeSystem}
    )

    @property
    def mapping_count(self) -> int:
        return sum(len(m) for m in self.mappings.values())

    def snapshot(self) -> "IndexSnapshot":
        """A snapshot is its own view."""
        return self

    def lookup(self, system: CodeSystem, code: str) -> TerminologyEntry:
        """
        Fetch a single entry.

        Raises:
            NotFound: If the code does not exist in the given system
        """
        entry = self.entries[system].get(code)
        if entry is None:
            raise NotFound(f"{system.value} code not found: {code}")
        return entry

    def contains(self, system: CodeSystem, code: str) -> bool:
        return code in self.entries[system]

    def search_hits(
        self,
        system: CodeSystem,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> List[SearchHit]:
        """
        Case-insensitive substring search over display names and synonyms.

        The query is matched as given, surrounding whitespace included.
        Prefix matches come first, then other substring matches; within
        each group entries are ordered by code.

        Raises:
            ValidationError: If the query is blank or limit is below 1
        """
        if not (query or "").strip():
            raise ValidationError("Search query must not be empty", field="query")
        if limit < 1:
            raise ValidationError("Search limit must be at least 1", field="limit")
        needle = query.lower()

        prefix_hits: List[SearchHit] = []
        substring_hits: List[SearchHit] = []
        # Rows are already in code order
        for terms, entry in self.search_rows[system]:
            if any(term.startswith(needle) for term in terms):
                prefix_hits.append(SearchHit(entry=entry, score=PREFIX_SCORE, prefix=True))
                if len(prefix_hits) >= limit:
                    break
            elif any(needle in term for term in terms):
                substring_hits.append(SearchHit(entry=entry, score=SUBSTRING_SCORE, prefix=False))

        return (prefix_hits + substring_hits)[:limit]

    def search(
        self,
        system: CodeSystem,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> List[TerminologyEntry]:
        """Search entries; see search_hits for ordering rules."""
        return [hit.entry for hit in self.search_hits(system, query, limit)]

    def mappings_for(self, namaste_code: str) -> List[CodeMapping]:
        """
        All ICD-11 mappings for a NAMASTE code, strongest first.

        Ordered by confidence descending, then mapping type
        (EXACT > NARROWER > BROADER > PARTIAL), then ICD code.
        Returns an empty list for codes without mappings.
        """
        return list(self.mappings.get(namaste_code, ()))

    def stats(self) -> Dict[str, int]:
        """Entry and mapping counts."""
        return {
            "namaste_entries": len(self.entries[CodeSystem.NAMASTE]),
            "icd11_entries": len(self.entries[CodeSystem.ICD11]),
            "mappings": self.mapping_count,
        }

    @property
    def is_empty(self) -> bool:
        return not any(self.entries[system] for system in CodeSystem)


class TerminologyIndex:
    """
    Thread-safe terminology index.

    Single reads go straight to the index. Operations made of several
    reads take one snapshot first.

    Usage:
        index = TerminologyIndex()
        index.load(entries, mappings)

        entry = index.lookup(CodeSystem.NAMASTE, "AY001")
        hits = index.search(CodeSystem.ICD11, "vata")

        view = index.snapshot()
        for mapping in view.mappings_for("AY001"):
            target = view.lookup(CodeSystem.ICD11, mapping.icd_code)
    """

    def __init__(self):
        """Initialize an empty index."""
        self._snapshot = IndexSnapshot()
        self._write_lock = threading.Lock()

    def snapshot(self) -> IndexSnapshot:
        """The currently loaded view; unaffected by later loads."""
        return self._snapshot

    def load(self, entries: Iterable[TerminologyEntry], mappings: Iterable[CodeMapping]) -> IndexSnapshot:
        """
        Replace the whole index atomically.

        Args:
            entries: Entries for both code systems
            mappings: NAMASTE → ICD-11 mappings

        Returns:
            The snapshot that was swapped in

        Raises:
            ValidationError: On duplicate codes or a mapping that references
                an unknown code. The previous index stays in place.
        """
        with self._write_lock:
            snapshot = self._build_snapshot(list(entries), list(mappings))
            self._snapshot = snapshot

        logger.info(
            "Terminology index loaded: %d NAMASTE, %d ICD-11 entries, %d mappings",
            len(snapshot.entries[CodeSystem.NAMASTE]),
            len(snapshot.entries[CodeSystem.ICD11]),
            snapshot.mapping_count,
        )
        return snapshot

    @staticmethod
    def _build_snapshot(entries: List[TerminologyEntry], mappings: List[CodeMapping]) -> IndexSnapshot:
        by_system: Dict[CodeSystem, Dict[str, TerminologyEntry]] = {system: {} for system in CodeSystem}
        for entry in entries:
            codes = by_system[entry.system]
            if entry.code in codes:
                raise ValidationError(
                    f"Duplicate {entry.system.value} code: {entry.code}",
                    field="entries",
                )
            codes[entry.code] = entry

        grouped: Dict[str, Dict[str, CodeMapping]] = {}
        for mapping in mappings:
            if mapping.namaste_code not in by_system[CodeSystem.NAMASTE]:
                raise ValidationError(
                    f"Mapping references unknown NAMASTE code: {mapping.namaste_code}",
                    field="mappings.namasteCode",
                )
            if mapping.icd_code not in by_system[CodeSystem.ICD11]:
                raise ValidationError(
                    f"Mapping references unknown ICD-11 code: {mapping.icd_code}",
                    field="mappings.icdCode",
                )
            targets = grouped.setdefault(mapping.namaste_code, {})
            if mapping.icd_code in targets:
                raise ValidationError(
                    f"Duplicate mapping {mapping.namaste_code} -> {mapping.icd_code}",
                    field="mappings",
                )
            targets[mapping.icd_code] = mapping

        sorted_mappings = {
            code: tuple(sorted(targets.values(), key=CodeMapping.sort_key))
            for code, targets in grouped.items()
        }

        search_rows = {
            system: tuple(
                (tuple(term.lower() for term in entry.terms), entry)
                for _, entry in sorted(codes.items())
            )
            for system, codes in by_system.items()
        }

        return IndexSnapshot(entries=by_system, mappings=sorted_mappings, search_rows=search_rows)

    # Single reads, each against the current snapshot

    def lookup(self, system: CodeSystem, code: str) -> TerminologyEntry:
        return self._snapshot.lookup(system, code)

    def contains(self, system: CodeSystem, code: str) -> bool:
        return self._snapshot.contains(system, code)

    def search_hits(
        self,
        system: CodeSystem,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> List[SearchHit]:
        return self._snapshot.search_hits(system, query, limit)

    def search(
        self,
        system: CodeSystem,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> List[TerminologyEntry]:
        return self._snapshot.search(system, query, limit)

    def mappings_for(self, namaste_code: str) -> List[CodeMapping]:
        return self._snapshot.mappings_for(namaste_code)

    def stats(self) -> Dict[str, int]:
        return self._snapshot.stats()

    @property
    def is_empty(self) -> bool:
        return self._snapshot.is_empty
