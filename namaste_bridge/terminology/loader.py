"""
Loads terminology datasets from JSON files into a TerminologyIndex.

File shape:
    {
      "entries": [{"system": "NAMASTE", "code": "...", "displayName": "...", "synonyms": [...]}],
      "mappings": [{"namasteCode": "...", "icdCode": "...", "mappingType": "EXACT", "confidence": 0.9}]
    }
"""
import json
import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError as SchemaError

from ..exceptions import ValidationError
from .index import TerminologyIndex
from .models import TerminologyDataset

logger = logging.getLogger(__name__)


def read_dataset(path: Union[str, Path]) -> TerminologyDataset:
    """
    Parse a terminology dataset file.
    
    Raises:
        ValidationError: If the file is not valid JSON or does not match
            the dataset schema
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {path.name}: {e}", field="dataset") from e
    
    return parse_dataset(raw)


def parse_dataset(raw: dict) -> TerminologyDataset:
    """Validate a raw dataset dictionary, reporting the first schema error."""
    try:
        return TerminologyDataset.model_validate(raw)
    except SchemaError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ValidationError(first["msg"], field=field) from e


def load_index_from_file(index: TerminologyIndex, path: Union[str, Path]) -> TerminologyDataset:
    """Read a dataset file and load it into the index in one step."""
    dataset = read_dataset(path)
    index.load(dataset.entries, dataset.mappings)
    logger.info("Loaded terminology dataset from %s", path)
    return dataset
