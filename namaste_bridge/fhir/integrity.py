"""
Referential integrity checks for Bundles.

A Bundle is consistent when:
1. every entry has a unique fullUrl
2. every resource is one of the supported resource types
3. a document Bundle starts with its Composition
4. every `reference` anywhere inside a resource points at a fullUrl of
   the same Bundle (no dangling references)

Logical references (an `identifier` without a `reference`) are not checked.
"""
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Tuple

from ..exceptions import IntegrityError
from .document import ALLOWED_RESOURCE_TYPES, BundleDocument


@dataclass(frozen=True)
class IntegrityViolation:
    """First problem found in a Bundle."""
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def iter_references(node: Any, path: str) -> Iterator[Tuple[str, str]]:
    """Yield (path, reference) for every Reference.reference under node, in document order."""
    if isinstance(node, dict):
        for key, value in node.items():
            child = f"{path}.{key}"
            if key == "reference" and isinstance(value, str):
                yield child, value
            else:
                yield from iter_references(value, child)
    elif isinstance(node, list):
        for i, item in enumerate(node):
            yield from iter_references(item, f"{path}[{i}]")


def find_integrity_violation(bundle: BundleDocument) -> Optional[IntegrityViolation]:
    """
    Return the first integrity violation in the bundle, or None.

    Entries are checked in order, so the reported violation is stable for
    a given document.
    """
    full_urls = set()
    for i, entry in enumerate(bundle.entry):
        if entry.full_url in full_urls:
            return IntegrityViolation(f"entry[{i}].fullUrl", f"Duplicate fullUrl {entry.full_url}")
        full_urls.add(entry.full_url)

        if entry.resource_type not in ALLOWED_RESOURCE_TYPES:
            return IntegrityViolation(
                f"entry[{i}].resource.resourceType",
                f"Unsupported resourceType {entry.resource_type}",
            )

    if bundle.type == "document" and bundle.entry[0].resource_type != "Composition":
        return IntegrityViolation(
            "entry[0].resource.resourceType",
            "A document Bundle must start with a Composition",
        )

    for i, entry in enumerate(bundle.entry):
        for path, reference in iter_references(entry.resource, f"entry[{i}].resource"):
            if reference not in full_urls:
                return IntegrityViolation(path, f"Dangling reference {reference}")

    return None


def check_integrity(bundle: BundleDocument) -> None:
    """
    Raise IntegrityError if the bundle is not referentially consistent.

    Used on freshly built bundles, where a violation is always a defect.
    """
    violation = find_integrity_violation(bundle)
    if violation is not None:
        raise IntegrityError(f"Bundle {bundle.id} failed integrity check: {violation}")
