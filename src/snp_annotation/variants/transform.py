"""Transform Ensembl VEP responses into AnnotationResult records."""

from typing import Any

import polars as pl
import structlog

from snp_annotation.variants.models import AnnotationResult

logger = structlog.get_logger()

# 1-letter to 3-letter amino acid codes ("*" is the termination codon)
AMINO_ACID_CODES: dict[str, str] = {
    "A": "Ala", "R": "Arg", "N": "Asn", "D": "Asp", "C": "Cys",
    "Q": "Gln", "E": "Glu", "G": "Gly", "H": "His", "I": "Ile",
    "L": "Leu", "K": "Lys", "M": "Met", "F": "Phe", "P": "Pro",
    "S": "Ser", "T": "Thr", "W": "Trp", "Y": "Tyr", "V": "Val",
    "*": "Ter",
}

PROTEIN_IMPACTS = {"HIGH", "MODERATE"}

RESULT_SCHEMA = {
    "identifier": pl.Utf8,
    "most_severe_consequence": pl.Utf8,
    "gene": pl.Utf8,
    "transcript_id": pl.Utf8,
    "clinical_significance": pl.Utf8,
    "amino_acid_change": pl.Utf8,
    "codon_change": pl.Utf8,
    "input": pl.Utf8,
}


def select_transcript_consequence(consequences: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Pick the transcript consequence to report for a variant.

    Prefers the first HIGH/MODERATE impact consequence or any consequence
    carrying an amino acid change; falls back to the first listed.
    """
    if not consequences:
        return None
    for consequence in consequences:
        if consequence.get("impact") in PROTEIN_IMPACTS or consequence.get("amino_acids"):
            return consequence
    return consequences[0]


def format_amino_acid_change(consequence: dict[str, Any] | None) -> str | None:
    """Render VEP amino_acids + protein_start as e.g. "Val158Met".

    Synonymous changes are reported by VEP as a single residue ("L"), which
    renders as "Leu12Leu".
    """
    if not consequence:
        return None
    amino_acids = consequence.get("amino_acids")
    protein_start = consequence.get("protein_start")
    if not amino_acids or not protein_start:
        return None

    parts = amino_acids.split("/")
    ref = parts[0]
    alt = parts[1] if len(parts) > 1 else ref
    ref_code = AMINO_ACID_CODES.get(ref, ref)
    alt_code = AMINO_ACID_CODES.get(alt, alt)
    return f"{ref_code}{protein_start}{alt_code}"


def extract_clinical_significance(record: dict[str, Any]) -> str | None:
    """Top-level clinical_significance first, then ClinVar on colocated variants."""
    top_level = record.get("clinical_significance")
    if top_level:
        return top_level[0] if isinstance(top_level, list) else str(top_level)

    for colocated in record.get("colocated_variants") or []:
        clin_sig = colocated.get("clin_sig")
        if clin_sig:
            return ", ".join(clin_sig) if isinstance(clin_sig, list) else str(clin_sig)

    return None


def parse_vep_record(record: dict[str, Any]) -> AnnotationResult | None:
    """Convert one VEP response object into an AnnotationResult.

    Returns None for records with neither an id nor an input echo, which
    cannot be attributed to any requested identifier.
    """
    identifier = record.get("id") or record.get("input")
    if not identifier:
        return None

    consequence = select_transcript_consequence(record.get("transcript_consequences") or [])

    return AnnotationResult(
        identifier=identifier,
        most_severe_consequence=record.get("most_severe_consequence"),
        gene=consequence.get("gene_symbol") if consequence else None,
        transcript_id=consequence.get("transcript_id") if consequence else None,
        clinical_significance=extract_clinical_significance(record),
        amino_acid_change=format_amino_acid_change(consequence),
        codon_change=consequence.get("codons") if consequence else None,
        input=record.get("input"),
    )


def parse_vep_response(records: list[dict[str, Any]]) -> list[AnnotationResult]:
    """Parse a VEP response list, keeping the first record per identifier."""
    results: dict[str, AnnotationResult] = {}
    dropped = 0

    for record in records:
        result = parse_vep_record(record)
        if result is None:
            dropped += 1
            continue
        results.setdefault(result.identifier, result)

    if dropped:
        logger.warning("vep_records_unattributable", dropped=dropped)

    return list(results.values())


def results_to_dataframe(results: list[AnnotationResult]) -> pl.DataFrame:
    """Build a polars DataFrame with a fixed schema (empty input gives an empty frame)."""
    if not results:
        return pl.DataFrame(schema=RESULT_SCHEMA)
    return pl.DataFrame(
        [result.model_dump() for result in results],
        schema=RESULT_SCHEMA,
    )
