"""
Case document loader.

Reads the static medical case document once and serves the same
in-memory value for the lifetime of the process.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from app.patient_service.config import settings
from app.patient_service.utils.logger import get_logger

logger = get_logger(__name__)

_CASE_CACHE: Dict[str, Any] = {}


class CaseDocumentError(RuntimeError):
    """Raised when the case document is missing or malformed."""


def load_case_document(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the case document, reading it from disk only on first use.

    Args:
        path: Override for the configured case file.

    Returns:
        dict: Parsed case document.

    Raises:
        CaseDocumentError: If the file cannot be read or is not a JSON object.
    """
    if "document" in _CASE_CACHE:
        return _CASE_CACHE["document"]

    case_path = Path(path or settings.CASE_FILE)

    try:
        raw = case_path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("Case document unreadable", extra={"path": str(case_path)})
        raise CaseDocumentError(f"Cannot read case document: {case_path}") from exc

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.error("Case document is not valid JSON", extra={"path": str(case_path)})
        raise CaseDocumentError(f"Malformed case document: {case_path}") from exc

    if not isinstance(document, dict) or not document:
        raise CaseDocumentError(f"Case document must be a non-empty object: {case_path}")

    _CASE_CACHE["document"] = document
    logger.info(
        "Case document loaded",
        extra={"path": str(case_path), "keys": len(document)},
    )
    return document


def get_case_document() -> Dict[str, Any]:
    """FastAPI dependency returning the cached case document."""
    return load_case_document()


def reset_case_cache() -> None:
    """Forget the cached document (used by tests)."""
    _CASE_CACHE.clear()
