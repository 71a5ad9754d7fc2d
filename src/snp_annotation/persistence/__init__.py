"""Persistence layer for annotation sessions, results and provenance tracking."""

from snp_annotation.persistence.duckdb_store import AnnotationStore
from snp_annotation.persistence.protocols import LookupService, ResultStore, SessionStore
from snp_annotation.persistence.provenance import ProvenanceTracker

__all__ = [
    "AnnotationStore",
    "LookupService",
    "ResultStore",
    "SessionStore",
    "ProvenanceTracker",
]
