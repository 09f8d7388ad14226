"""FastAPI dependencies shared by the endpoints"""
from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .encounter.assembler import EncounterAssembler
from .fhir.builder import BundleBuilder
from .store.bundle_store import BundleStore
from .store.factory import StoreFactory
from .terminology.index import TerminologyIndex
from .terminology.resolver import TerminologyResolver

# Process-wide index; read-only between loads
terminology_index = TerminologyIndex()


def get_terminology_index() -> TerminologyIndex:
    return terminology_index


def get_resolver(index: TerminologyIndex = Depends(get_terminology_index)) -> TerminologyResolver:
    return TerminologyResolver(index)


def get_assembler(resolver: TerminologyResolver = Depends(get_resolver)) -> EncounterAssembler:
    return EncounterAssembler(resolver)


def get_bundle_builder() -> BundleBuilder:
    return BundleBuilder()


def get_bundle_store(db: Session = Depends(get_db)) -> BundleStore:
    """Bundle store for one request, on the configured back-end"""
    return BundleStore(StoreFactory.create(db))
