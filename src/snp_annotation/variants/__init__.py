"""Variant identifier extraction, VEP lookup and result models."""

from snp_annotation.variants.models import (
    AnnotationResult,
    AnnotationSession,
    SessionStatus,
    identifier_digest,
    RESULTS_TABLE_NAME,
    SESSIONS_TABLE_NAME,
)
from snp_annotation.variants.extract import extract_identifiers, read_identifier_file
from snp_annotation.variants.fetch import EnsemblVEPClient, ENSEMBL_API_URL
from snp_annotation.variants.panel import RELEVANT_SNPS
from snp_annotation.variants.transform import (
    format_amino_acid_change,
    parse_vep_record,
    parse_vep_response,
    results_to_dataframe,
)

__all__ = [
    "AnnotationResult",
    "AnnotationSession",
    "SessionStatus",
    "identifier_digest",
    "RESULTS_TABLE_NAME",
    "SESSIONS_TABLE_NAME",
    "extract_identifiers",
    "read_identifier_file",
    "EnsemblVEPClient",
    "ENSEMBL_API_URL",
    "RELEVANT_SNPS",
    "format_amino_acid_change",
    "parse_vep_record",
    "parse_vep_response",
    "results_to_dataframe",
]
