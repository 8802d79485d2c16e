"""Fills in derived document metadata before chunking.

Adds ingestion timestamps, a content checksum, trust and source-URL
defaults, and keyword-derived ``priority`` and ``scope`` tags used to boost
retrieval for IFRS S1/S2 sustainability material.  Values the caller set
explicitly are never overwritten.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone

from complyx.models.documents import DocumentMetadata, DocumentType, Priority

# Leading characters of the body inspected for scope detection.
_SCOPE_SAMPLE_CHARS = 1000


def compute_checksum(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def detect_priority(title: str, document_type: str) -> str:
    """S1/S2 and sustainability → high; IFRS/IAS, standards, guidance → medium."""
    title_lower = title.lower()
    is_standard = document_type == DocumentType.STANDARD.value

    if (
        "ifrs s1" in title_lower
        or "ifrs s2" in title_lower
        or "sustainability" in title_lower
        or (is_standard and ("s1" in title_lower or "s2" in title_lower))
    ):
        return Priority.HIGH.value
    if (
        "ifrs" in title_lower
        or "ias" in title_lower
        or is_standard
        or document_type == DocumentType.GUIDANCE.value
    ):
        return Priority.MEDIUM.value
    return Priority.LOW.value


def detect_scope(title: str, text: str) -> str:
    """Classify a document as ``s1``, ``s2``, ``general`` or ``accounting``."""
    combined = f"{title.lower()} {text[:_SCOPE_SAMPLE_CHARS].lower()}"

    if (
        "ifrs s1" in combined
        or "sustainability-related financial information" in combined
        or ("general requirements" in combined and "sustainability" in combined)
    ):
        return "s1"
    if "ifrs s2" in combined or "climate-related" in combined or "climate disclosure" in combined:
        return "s2"
    if "ifrs" in combined or "ias" in combined:
        return "general"
    return "accounting"


def enrich_metadata(
    metadata: DocumentMetadata,
    text: str,
    now: datetime | None = None,
) -> DocumentMetadata:
    """Return a copy of *metadata* with derived fields populated."""
    now = now or datetime.now(timezone.utc)
    document_type = metadata.document_type or DocumentType.OTHER.value
    return metadata.model_copy(
        update={
            "ingestion_date": now,
            "last_modified": metadata.last_modified or now,
            "checksum": metadata.checksum or compute_checksum(text),
            "trusted_source": True if metadata.trusted_source is None else metadata.trusted_source,
            "source_url": metadata.source_url or metadata.url,
            "priority": metadata.priority or detect_priority(metadata.title, document_type),
            "scope": metadata.scope or detect_scope(metadata.title, text),
        }
    )
