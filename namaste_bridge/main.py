import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query, status
from pydantic import ValidationError as SchemaError
from sqlalchemy.exc import OperationalError

from . import database, models
from .auth import get_practitioner_ref
from .config import settings
from .dependencies import (
    get_assembler,
    get_bundle_builder,
    get_bundle_store,
    get_resolver,
    get_terminology_index,
    terminology_index,
)
from .encounter.assembler import EncounterAssembler
from .exceptions import ConflictError, IntegrityError, NotFound, ValidationError
from .fhir.builder import BundleBuilder
from .fhir.document import BundleDocument
from .schemas import (
    BundleCreatedResponse,
    DiagnosisResult,
    EncounterBundleRequest,
    EncounterBundleResponse,
    HealthResponse,
    MappingResponse,
    ResolveResponse,
    SearchResult,
    SuggestionResponse,
    TerminologyEntryResponse,
    TerminologyStatsResponse,
)
from .store.bundle_store import BundleStore
from .terminology.index import TerminologyIndex
from .terminology.loader import load_index_from_file
from .terminology.models import CodeSystem, TerminologyDataset, Unmapped
from .terminology.resolver import TerminologyResolver

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and load the terminology dataset on startup"""
    models.Base.metadata.create_all(bind=database.engine)
    logger.info("Database tables created")

    data_path = Path(settings.terminology_data_path)
    if data_path.exists():
        load_index_from_file(terminology_index, data_path)
    else:
        logger.warning("Terminology dataset not found at %s; index is empty", data_path)
    yield

# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="NAMASTE to ICD-11 terminology resolution and FHIR Bundle service",
    version="1.0.0",
    lifespan=lifespan
)


def validation_http_error(error: ValidationError) -> HTTPException:
    """422 with the offending field"""
    return HTTPException(status_code=422, detail=error.to_dict())


def first_schema_error(error: SchemaError) -> HTTPException:
    """422 describing only the first schema violation"""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or None
    return validation_http_error(ValidationError(first["msg"], field=field))


def internal_error(error: IntegrityError) -> HTTPException:
    """Integrity failures are defects: log them, return a generic 500"""
    logger.error("Integrity failure: %s", error.message, exc_info=error)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal error while building the bundle",
    )


def storage_error(error: OperationalError) -> HTTPException:
    """Storage still failing after retries: log it, return 503"""
    logger.error("Bundle storage unavailable: %s", error, exc_info=error)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Bundle storage is temporarily unavailable",
    )

# ============================================================================
# HEALTH
# ============================================================================

@app.get("/health", response_model=HealthResponse)
def health_check():
    """
    Health check endpoint - returns {"status": "ok"}
    """
    return {"status": "ok"}

# ============================================================================
# TERMINOLOGY ENDPOINTS
# ============================================================================

@app.get("/terminology/search", response_model=List[SearchResult])
def search_terminology(
    query: str = Query(..., min_length=1, max_length=200),
    system: Optional[CodeSystem] = None,
    limit: Optional[int] = Query(None, ge=1, le=settings.max_search_limit),
    index: TerminologyIndex = Depends(get_terminology_index),
):
    """
    Search terminology entries by display name or synonym.

    Matches are case-insensitive substrings. Prefix matches come first,
    then other matches, each group ordered by code. Without `system`,
    NAMASTE and ICD-11 results are merged.
    """
    limit = limit or settings.default_search_limit
    systems = [system] if system else list(CodeSystem)
    view = index.snapshot()
    try:
        hits = [
            (s, hit)
            for s in systems
            for hit in view.search_hits(s, query, limit)
        ]
    except ValidationError as e:
        raise validation_http_error(e)

    system_order = {s: i for i, s in enumerate(CodeSystem)}
    hits.sort(key=lambda item: (not item[1].prefix, item[1].entry.code, system_order[item[0]]))
    return [
        SearchResult(
            system=s,
            code=hit.entry.code,
            display_name=hit.entry.display_name,
            score=hit.score,
        )
        for s, hit in hits[:limit]
    ]

@app.get("/terminology/suggest", response_model=List[SuggestionResponse])
def suggest_terminology(
    text: str = Query("", max_length=200),
    limit: Optional[int] = Query(None, ge=1, le=settings.max_search_limit),
    resolver: TerminologyResolver = Depends(get_resolver),
):
    """
    Type-ahead suggestions across both code systems.

    NAMASTE matches also pull in their mapped ICD-11 targets. Safe to call
    on every keystroke; an empty text returns an empty list.
    """
    suggestions = resolver.suggest(text, limit or settings.default_search_limit)
    return [
        SuggestionResponse(
            system=s.system,
            code=s.code,
            display_name=s.display_name,
            score=s.score,
            mapped_from=s.mapped_from,
            mapping_type=s.mapping_type,
        )
        for s in suggestions
    ]

@app.get("/terminology/resolve/{namaste_code}", response_model=ResolveResponse)
def resolve_code(namaste_code: str, resolver: TerminologyResolver = Depends(get_resolver)):
    """
    Resolve a NAMASTE code to its best ICD-11 mapping.

    An unmapped code is a normal outcome (status "unmapped"), not an error.
    Returns 404 only if the NAMASTE code itself is unknown.
    """
    resolver = resolver.pinned()
    try:
        resolver.index.lookup(CodeSystem.NAMASTE, namaste_code)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)

    resolution = resolver.resolve(namaste_code)
    candidates = [
        MappingResponse(
            icd_code=m.icd_code,
            icd_name=resolver.index.lookup(CodeSystem.ICD11, m.icd_code).display_name,
            mapping_type=m.mapping_type,
            confidence=m.confidence,
        )
        for m in resolver.candidates(namaste_code)
    ]

    if isinstance(resolution, Unmapped):
        return ResolveResponse(namaste_code=namaste_code, status="unmapped")

    return ResolveResponse(
        namaste_code=namaste_code,
        status="mapped",
        icd_code=resolution.icd_code,
        mapping_type=resolution.mapping_type,
        confidence=resolution.confidence,
        candidates=candidates,
    )

@app.get("/terminology/{system}/{code}", response_model=TerminologyEntryResponse)
def get_terminology_entry(
    system: CodeSystem,
    code: str,
    index: TerminologyIndex = Depends(get_terminology_index),
):
    """
    Fetch a single code entry.

    Returns 404 if the code does not exist in the system.
    """
    try:
        entry = index.lookup(system, code)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return TerminologyEntryResponse(
        system=entry.system,
        code=entry.code,
        display_name=entry.display_name,
        synonyms=list(entry.synonyms),
    )

@app.put("/terminology", response_model=TerminologyStatsResponse)
def load_terminology(
    dataset: TerminologyDataset,
    index: TerminologyIndex = Depends(get_terminology_index),
):
    """
    Replace the terminology index with a new dataset.

    The swap is atomic: on a validation failure (e.g. a mapping that
    references an unknown code) the current index stays in place.
    """
    try:
        loaded = index.load(dataset.entries, dataset.mappings)
    except ValidationError as e:
        raise validation_http_error(e)
    return TerminologyStatsResponse(**loaded.stats())

# ============================================================================
# ENCOUNTER ENDPOINT
# ============================================================================

@app.post("/encounters/bundle", response_model=EncounterBundleResponse)
def build_encounter_bundle(
    request: EncounterBundleRequest,
    practitioner_ref: str = Depends(get_practitioner_ref),
    assembler: EncounterAssembler = Depends(get_assembler),
    builder: BundleBuilder = Depends(get_bundle_builder),
    store: BundleStore = Depends(get_bundle_store),
):
    """
    Assemble an encounter and build its FHIR Bundle.

    Pipeline:
    1. Resolve each NAMASTE diagnosis to ICD-11 (unmapped ones are kept and
       flagged as incomplete)
    2. Validate prescriptions and finalize the encounter
    3. Build the Bundle document
    4. Store it when `submit` is true
    """
    try:
        encounter = assembler.start(
            request.patient_ref,
            practitioner_ref,
            request.chief_complaint,
            request.clinical_notes,
        )
        for diagnosis in request.diagnoses:
            assembler.add_diagnosis(encounter, diagnosis.namaste_code, diagnosis.notes)
        for prescription in request.prescriptions:
            assembler.add_prescription(
                encounter,
                prescription.medication,
                prescription.dosage,
                prescription.frequency,
                prescription.duration,
            )
        snapshot = assembler.finalize(encounter, supersedes=request.supersedes)
        bundle = builder.build(snapshot, bundle_type=request.bundle_type)

        result_status = "built"
        if request.submit:
            store.upload(bundle)
            result_status = "created"
    except ValidationError as e:
        raise validation_http_error(e)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except IntegrityError as e:
        raise internal_error(e)
    except OperationalError as e:
        raise storage_error(e)

    return EncounterBundleResponse(
        bundle_id=bundle.id,
        status=result_status,
        diagnoses=[
            DiagnosisResult(**d.model_dump(), incomplete=d.incomplete)
            for d in snapshot.diagnoses
        ],
        incomplete_count=len(snapshot.incomplete_diagnoses),
        bundle=bundle.to_document(),
    )

# ============================================================================
# BUNDLE ENDPOINTS
# ============================================================================

@app.post("/bundles", response_model=BundleCreatedResponse, status_code=status.HTTP_201_CREATED)
def upload_bundle(
    payload: Dict[str, Any] = Body(...),
    store: BundleStore = Depends(get_bundle_store),
):
    """
    Upload a FHIR Bundle document.

    Rejects the upload with 422 on the first schema or integrity violation
    (e.g. a reference to a fullUrl that is not in the Bundle) and with 409
    if a Bundle with the same id was already stored.
    """
    try:
        bundle = BundleDocument.model_validate(payload)
    except SchemaError as e:
        raise first_schema_error(e)

    try:
        bundle_id = store.upload(bundle)
    except ValidationError as e:
        raise validation_http_error(e)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except OperationalError as e:
        raise storage_error(e)

    return BundleCreatedResponse(id=bundle_id)

@app.get("/bundles/{bundle_id}")
def get_bundle(bundle_id: str, store: BundleStore = Depends(get_bundle_store)):
    """
    Fetch a stored Bundle exactly as it was uploaded.

    Returns 404 if no Bundle has this id.
    """
    try:
        return store.get_document(bundle_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except OperationalError as e:
        raise storage_error(e)
