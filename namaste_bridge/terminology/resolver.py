"""
Terminology Resolver

Turns a NAMASTE code into its best ICD-11 mapping, and free text into a
ranked list of candidates across both code systems for interactive lookup.
"""
from typing import Dict, List, Optional, Tuple, Union

from .index import DEFAULT_SEARCH_LIMIT, IndexSnapshot, TerminologyIndex
from .models import CodeMapping, CodeSystem, Resolution, Suggestion, Unmapped

# NAMASTE results sort ahead of ICD-11 results with the same score
SYSTEM_ORDER = {CodeSystem.NAMASTE: 0, CodeSystem.ICD11: 1}

EXACT_CODE_SCORE = 1.0


class TerminologyResolver:
    """
    Resolves NAMASTE codes to ICD-11 using a TerminologyIndex.
    
    All methods are read-only against the index, so they can be called
    freely (e.g. on every keystroke of a search box). Callers that chain
    several calls (lookup, resolve, display name) use `pinned()` so every
    call sees the same dataset even if the index is reloaded meanwhile.
    """
    
    def __init__(self, index: Union[TerminologyIndex, IndexSnapshot]):
        """
        Initialize the resolver.
        
        Args:
            index: Loaded terminology index, or one snapshot of it
        """
        self.index = index
    
    def pinned(self) -> "TerminologyResolver":
        """Resolver bound to the snapshot that is current right now."""
        return TerminologyResolver(self.index.snapshot())
    
    def resolve(self, namaste_code: str) -> Resolution:
        """
        Return the strongest ICD-11 mapping for a NAMASTE code.
        
        Args:
            namaste_code: NAMASTE code to resolve
            
        Returns:
            The top-ranked CodeMapping, or Unmapped if none exist
        """
        mappings = self.index.mappings_for(namaste_code)
        if not mappings:
            return Unmapped(namaste_code=namaste_code)
        return mappings[0]
    
    def candidates(self, namaste_code: str) -> List[CodeMapping]:
        """All ICD-11 candidates for a NAMASTE code, strongest first."""
        return self.index.mappings_for(namaste_code)
    
    def suggest(self, free_text: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[Suggestion]:
        """
        Merged, de-duplicated suggestions from both code systems.
        
        Includes text matches in NAMASTE and ICD-11, an exact code match if
        the text is a code, and the mapped ICD-11 targets of every NAMASTE
        match (scored by hit score times mapping confidence).
        
        Args:
            free_text: Text typed by the clinician
            limit: Maximum number of suggestions
            
        Returns:
            Suggestions ordered by score, then NAMASTE before ICD-11, then code
        """
        code = (free_text or "").strip()
        if not code or limit < 1:
            return []
        
        view = self.index.snapshot()
        best: Dict[Tuple[CodeSystem, str], Suggestion] = {}
        
        def offer(suggestion: Suggestion) -> None:
            key = (suggestion.system, suggestion.code)
            current = best.get(key)
            if current is None or suggestion.score > current.score:
                best[key] = suggestion
        
        for system in CodeSystem:
            if view.contains(system, code):
                entry = view.lookup(system, code)
                offer(Suggestion(system, entry.code, entry.display_name, EXACT_CODE_SCORE))
            
            for hit in view.search_hits(system, free_text, limit):
                offer(Suggestion(system, hit.entry.code, hit.entry.display_name, hit.score))
        
        namaste_hits = [s for s in list(best.values()) if s.system == CodeSystem.NAMASTE]
        for hit in namaste_hits:
            for mapping in view.mappings_for(hit.code):
                target = view.lookup(CodeSystem.ICD11, mapping.icd_code)
                offer(Suggestion(
                    system=CodeSystem.ICD11,
                    code=target.code,
                    display_name=target.display_name,
                    score=round(hit.score * mapping.confidence, 4),
                    mapped_from=hit.code,
                    mapping_type=mapping.mapping_type,
                ))
        
        ranked = sorted(
            best.values(),
            key=lambda s: (-s.score, SYSTEM_ORDER[s.system], s.code),
        )
        return ranked[:limit]
    
    def top_icd_display(self, resolution: Resolution) -> Optional[str]:
        """Display name of the resolved ICD-11 target, if any."""
        if isinstance(resolution, Unmapped):
            return None
        return self.index.lookup(CodeSystem.ICD11, resolution.icd_code).display_name
