"""Provenance tracking for annotation runs."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class ProvenanceTracker:
    """
    Tracks provenance metadata for annotation runs.

    Records pipeline version, the Ensembl endpoint and batch settings, the
    config hash, and each processing step (session creation, runs, exports)
    so exported annotations can be traced back to how they were produced.
    """

    def __init__(self, pipeline_version: str, config: "AnnotationConfig"):
        """
        Initialize provenance tracker.

        Args:
            pipeline_version: Pipeline version string (e.g., "0.1.0")
            config: AnnotationConfig instance
        """
        self.pipeline_version = pipeline_version
        self.config_hash = config.config_hash()
        self.data_source = {
            "ensembl_base_url": config.ensembl.base_url,
            "species": config.ensembl.species,
            "include_clinvar": config.ensembl.include_clinvar,
            "batch_size": config.batch.batch_size,
            "identifier_pattern": config.batch.identifier_pattern,
        }
        self.processing_steps = []
        self.created_at = datetime.now(timezone.utc)

    def record_step(self, step_name: str, details: Optional[dict] = None) -> None:
        """
        Record a processing step.

        Args:
            step_name: Name of the processing step
            details: Optional dictionary of additional details
        """
        step = {
            "step_name": step_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if details:
            step["details"] = details
        self.processing_steps.append(step)

    def create_metadata(self) -> dict:
        """
        Create full provenance metadata dictionary.

        Returns:
            Dictionary with all provenance information
        """
        return {
            "pipeline_version": self.pipeline_version,
            "data_source": self.data_source,
            "config_hash": self.config_hash,
            "created_at": self.created_at.isoformat(),
            "processing_steps": self.processing_steps,
        }

    def save_sidecar(self, output_path: Path) -> Path:
        """
        Save provenance metadata as a JSON sidecar file.

        Args:
            output_path: Path to the main output file.
                         Sidecar will be saved as {path}.provenance.json

        Returns:
            Path of the written sidecar
        """
        sidecar_path = output_path.with_suffix(".provenance.json")
        sidecar_path.parent.mkdir(parents=True, exist_ok=True)

        with open(sidecar_path, "w") as f:
            json.dump(self.create_metadata(), f, indent=2, default=str)

        return sidecar_path

    def save_to_store(self, store: "AnnotationStore", session_id: str) -> None:
        """
        Append provenance metadata for a session to the DuckDB store.

        Args:
            store: AnnotationStore instance
            session_id: Session the recorded steps belong to
        """
        metadata = self.create_metadata()

        with store.lock:
            store.conn.execute("""
                CREATE TABLE IF NOT EXISTS _provenance (
                    session_id VARCHAR,
                    version VARCHAR,
                    config_hash VARCHAR,
                    created_at TIMESTAMP,
                    steps_json VARCHAR
                )
            """)

            store.conn.execute("""
                INSERT INTO _provenance (session_id, version, config_hash, created_at, steps_json)
                VALUES (?, ?, ?, ?, ?)
            """, [
                session_id,
                metadata["pipeline_version"],
                metadata["config_hash"],
                self.created_at.replace(tzinfo=None),
                json.dumps(metadata["processing_steps"], default=str),
            ])

    @staticmethod
    def load_from_store(store: "AnnotationStore", session_id: str) -> list[dict]:
        """
        Load every provenance record stored for a session, oldest first.

        Returns:
            List of dicts with version, config_hash, created_at and steps
        """
        with store.lock:
            exists = store.conn.execute(
                "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = '_provenance'"
            ).fetchone()[0]
            if not exists:
                return []

            rows = store.conn.execute("""
                SELECT version, config_hash, created_at, steps_json
                FROM _provenance
                WHERE session_id = ?
                ORDER BY created_at, rowid
            """, [session_id]).fetchall()

        return [
            {
                "pipeline_version": row[0],
                "config_hash": row[1],
                "created_at": row[2],
                "processing_steps": json.loads(row[3]),
            }
            for row in rows
        ]

    @staticmethod
    def load_sidecar(sidecar_path: Path) -> dict:
        """Load provenance metadata from a sidecar file."""
        with open(sidecar_path) as f:
            return json.load(f)

    @classmethod
    def from_config(
        cls,
        config: "AnnotationConfig",
        version: Optional[str] = None
    ) -> "ProvenanceTracker":
        """
        Create ProvenanceTracker from an AnnotationConfig.

        Args:
            config: AnnotationConfig instance
            version: Pipeline version string. If None, uses snp_annotation.__version__

        Returns:
            ProvenanceTracker instance
        """
        if version is None:
            from snp_annotation import __version__
            version = __version__

        return cls(version, config)
