"""JSON document fields that may reference a file on disk."""

import json
from pathlib import Path
from typing import Annotated, Optional, Union

from pydantic import AfterValidator, ValidationInfo

from cumulus_aws.utils.errors import ConfigurationError

DOCUMENT_SUFFIX = '.json'


def is_file_reference(value: str) -> bool:
    """A document value ending in .json names a file rather than inline JSON."""
    return value.strip().endswith(DOCUMENT_SUFFIX)


def normalize_document(text: str) -> str:
    """Return the compact, key-sorted form of a JSON document.

    Configured documents and documents returned by AWS differ in whitespace
    and key order; normalizing both makes them comparable.

    Raises:
        ConfigurationError: If the text is not valid JSON
    """
    try:
        return json.dumps(json.loads(text), separators=(',', ':'), sort_keys=True)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON document: {e}", cause=e)


def read_document(path: Union[str, Path], base_dir: Optional[Union[str, Path]] = None) -> str:
    """Read a JSON document from disk and normalize it.

    Args:
        path: Path to the document, relative paths resolve against base_dir
        base_dir: Directory of the configuration that referenced the file

    Raises:
        ConfigurationError: If the file cannot be read or is not valid JSON
    """
    document_path = Path(path)
    if base_dir is not None and not document_path.is_absolute():
        document_path = Path(base_dir) / document_path

    try:
        with open(document_path, 'r') as f:
            text = f.read()
    except OSError as e:
        raise ConfigurationError(f"Unable to read document from path [{document_path}]", cause=e)

    return normalize_document(text)


def resolve_document(value: Optional[str], base_dir: Optional[Union[str, Path]] = None) -> Optional[str]:
    """Resolve a document value that is either a file reference or inline JSON."""
    if value is None:
        return None
    if is_file_reference(value):
        return read_document(value.strip(), base_dir)
    return normalize_document(value)


def _resolve_field(value: Optional[str], info: ValidationInfo) -> Optional[str]:
    base_dir = (info.context or {}).get('base_dir')
    return resolve_document(value, base_dir)


# A spec field holding a JSON document. Resolved when the spec is validated;
# pass context={'base_dir': ...} to model_validate for relative file references.
JsonDocument = Annotated[Optional[str], AfterValidator(_resolve_field)]
