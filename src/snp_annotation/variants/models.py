"""Data models for annotation sessions and variant annotation results."""

import hashlib
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field, model_validator

# Table names for DuckDB storage
SESSIONS_TABLE_NAME = "annotation_sessions"
RESULTS_TABLE_NAME = "annotation_results"


class SessionStatus(str, Enum):
    """Lifecycle states of an annotation session."""

    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


def identifier_digest(identifiers: Iterable[str]) -> str:
    """SHA-256 over the sorted, deduplicated identifiers.

    Order-insensitive so that the same file re-read on resume always yields
    the same digest.
    """
    canonical = "\n".join(sorted(set(identifiers)))
    return hashlib.sha256(canonical.encode()).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnnotationResult(BaseModel):
    """Annotation for a single variant identifier returned by VEP.

    Attributes:
        identifier: Variant identifier that was looked up (e.g. rs4680)
        most_severe_consequence: Sequence Ontology term for the worst consequence
        gene: HGNC symbol of the selected transcript's gene - NULL if intergenic
        transcript_id: Ensembl transcript ID of the selected consequence
        clinical_significance: ClinVar significance, comma-joined if several
        amino_acid_change: Protein change in 3-letter form (e.g. Val158Met)
        codon_change: Codon change as reported by VEP (e.g. Gtg/Atg)
        input: Raw input string echoed back by VEP

    Everything except the identifier is opaque payload: absent values are
    kept as None rather than empty strings.
    """

    identifier: str
    most_severe_consequence: str | None = None
    gene: str | None = None
    transcript_id: str | None = None
    clinical_significance: str | None = None
    amino_acid_change: str | None = None
    codon_change: str | None = None
    input: str | None = None


class AnnotationSession(BaseModel):
    """Persisted state of one resumable annotation run.

    processed_count is kept alongside processed_items for display and must
    always equal len(processed_items); the validator enforces it on every
    construction so a checkpoint can never be written inconsistent.
    """

    id: str
    source_name: str
    owner_id: str = "local"
    status: SessionStatus = SessionStatus.IN_PROGRESS
    total_items: int = Field(ge=0)
    processed_items: set[str] = Field(default_factory=set)
    processed_count: int = 0
    identifiers: list[str] = Field(default_factory=list)
    identifier_digest: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def sync_processed_count(self) -> "AnnotationSession":
        self.processed_count = len(self.processed_items)
        return self
