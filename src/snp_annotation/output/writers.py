"""Dual-format TSV+Parquet writer for session results with provenance sidecar."""

from datetime import datetime, timezone
from pathlib import Path

import polars as pl
import yaml

from snp_annotation.variants.models import AnnotationSession


def write_session_results(
    df: pl.DataFrame,
    session: AnnotationSession,
    output_dir: Path,
    filename_base: str | None = None,
    provenance_metadata: dict | None = None,
) -> dict:
    """
    Write a session's annotation results to TSV and Parquet with a YAML sidecar.

    Args:
        df: Results DataFrame (identifier, most_severe_consequence, gene, ...)
        session: Session the results belong to
        output_dir: Directory to write output files (created if doesn't exist)
        filename_base: Base filename without extension (default: "annotations_<session id>")
        provenance_metadata: Optional ProvenanceTracker metadata to embed

    Returns:
        Dictionary with output file paths:
        {
            "tsv": Path to TSV file,
            "parquet": Path to Parquet file,
            "provenance": Path to YAML provenance sidecar
        }

    Notes:
        - Sorted by identifier for deterministic output
        - Sidecar records session status and progress, so partial exports of
          paused sessions are recognisable as such
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    filename_base = filename_base or f"annotations_{session.id}"
    df = df.sort("identifier")

    tsv_path = output_dir / f"{filename_base}.tsv"
    parquet_path = output_dir / f"{filename_base}.parquet"
    provenance_path = output_dir / f"{filename_base}.provenance.yaml"

    df.write_csv(tsv_path, separator="\t", include_header=True)
    df.write_parquet(parquet_path, compression="snappy", use_pyarrow=True)

    consequence_counts = {}
    if df.height > 0 and "most_severe_consequence" in df.columns:
        counts = (
            df.group_by("most_severe_consequence")
            .agg(pl.len())
            .sort("most_severe_consequence", nulls_last=True)
        )
        consequence_counts = {
            str(row["most_severe_consequence"]): row["len"] for row in counts.to_dicts()
        }

    provenance = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "output_files": [tsv_path.name, parquet_path.name],
        "session": {
            "id": session.id,
            "source_name": session.source_name,
            "status": session.status.value,
            "total_items": session.total_items,
            "processed_count": session.processed_count,
            "created_at": session.created_at.isoformat(),
        },
        "statistics": {
            "result_count": df.height,
            "unannotated_count": session.processed_count - df.height,
            "with_clinical_significance": (
                df.filter(pl.col("clinical_significance").is_not_null()).height
                if "clinical_significance" in df.columns else 0
            ),
            "consequences": consequence_counts,
        },
        "column_names": df.columns,
    }
    if provenance_metadata:
        provenance["pipeline"] = provenance_metadata

    with open(provenance_path, "w") as f:
        yaml.dump(provenance, f, default_flow_style=False, sort_keys=False)

    return {
        "tsv": tsv_path,
        "parquet": parquet_path,
        "provenance": provenance_path,
    }
