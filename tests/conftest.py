"""Shared fixtures: in-memory stores, a scriptable lookup service, test config."""

from datetime import datetime, timedelta, timezone

import pytest

from snp_annotation.config.loader import load_config
from snp_annotation.errors import SessionNotFoundError, VariantLookupError
from snp_annotation.variants.models import AnnotationResult, AnnotationSession, SessionStatus


class FakeLookup:
    """Lookup service returning canned annotations.

    Args:
        annotated: Identifiers that produce a result (None = all of them)
        fail_calls: 1-based call numbers that raise VariantLookupError
        on_call: Hook called with (call_number, identifiers) before answering
    """

    def __init__(self, annotated=None, fail_calls=(), on_call=None):
        self.annotated = set(annotated) if annotated is not None else None
        self.fail_calls = set(fail_calls)
        self.on_call = on_call
        self.calls: list[list[str]] = []
        self.closed = False

    def lookup(self, identifiers):
        self.calls.append(list(identifiers))
        call_number = len(self.calls)
        if self.on_call is not None:
            self.on_call(call_number, list(identifiers))
        if call_number in self.fail_calls:
            raise VariantLookupError("Ensembl VEP error (503)", identifiers)
        return [
            AnnotationResult(
                identifier=identifier,
                most_severe_consequence="missense_variant",
                gene="COMT",
            )
            for identifier in identifiers
            if self.annotated is None or identifier in self.annotated
        ]

    def close(self):
        self.closed = True

    @property
    def looked_up(self) -> list[str]:
        return [identifier for call in self.calls for identifier in call]


class InMemoryStore:
    """Session + result store keeping everything in dicts.

    Records every write in `writes` so tests can check ordering, and can be
    told to fail the Nth upsert.
    """

    def __init__(self, fail_on_upsert=None):
        self.sessions: dict[str, AnnotationSession] = {}
        self.results: dict[str, dict[str, AnnotationResult]] = {}
        self.writes: list[tuple] = []
        self.checkpoints: list[tuple[int, int]] = []
        self.fail_on_upsert = fail_on_upsert
        self._upserts = 0

    def create_session(self, session):
        self.sessions[session.id] = session.model_copy(deep=True)
        self.results.setdefault(session.id, {})
        return session.id

    def update_session(self, session_id, **fields):
        if session_id not in self.sessions:
            raise SessionNotFoundError(session_id)
        data = self.sessions[session_id].model_dump()
        if "status" in fields:
            data["status"] = SessionStatus(fields["status"])
        if "processed_items" in fields:
            data["processed_items"] = set(fields["processed_items"])
        data["updated_at"] = datetime.now(timezone.utc)
        updated = AnnotationSession.model_validate(data)
        self.sessions[session_id] = updated
        self.writes.append(("session", session_id, dict(fields)))
        if "processed_items" in fields:
            self.checkpoints.append((updated.processed_count, len(updated.processed_items)))

    def read_session(self, session_id):
        if session_id not in self.sessions:
            raise SessionNotFoundError(session_id)
        return self.sessions[session_id].model_copy(deep=True)

    def list_sessions(self, owner_id=None):
        found = [
            s for s in self.sessions.values()
            if owner_id is None or s.owner_id == owner_id
        ]
        return sorted(found, key=lambda s: s.created_at, reverse=True)

    def upsert_results(self, session_id, results):
        self._upserts += 1
        if self.fail_on_upsert is not None and self._upserts == self.fail_on_upsert:
            raise RuntimeError("disk full")
        for result in results:
            self.results.setdefault(session_id, {})[result.identifier] = result
        self.writes.append(("results", session_id, [r.identifier for r in results]))

    def list_results(self, session_id):
        return sorted(self.results.get(session_id, {}).values(), key=lambda r: r.identifier)


def make_session(session_id="s1", identifiers=("rs1", "rs2"), created_offset=0, **kwargs):
    """Build an AnnotationSession with sensible defaults."""
    from snp_annotation.variants.models import identifier_digest

    identifiers = sorted(set(identifiers))
    created = datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=created_offset)
    return AnnotationSession(
        id=session_id,
        source_name=kwargs.pop("source_name", "genome.txt"),
        total_items=len(identifiers),
        identifiers=identifiers,
        identifier_digest=identifier_digest(identifiers),
        created_at=created,
        updated_at=created,
        **kwargs,
    )


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def config_file(tmp_path):
    """Write a minimal config YAML rooted in tmp_path."""
    config_path = tmp_path / "test_config.yaml"
    config_path.write_text(f"""
data_dir: {tmp_path / "data"}
cache_dir: {tmp_path / "cache"}
duckdb_path: {tmp_path / "annotation.duckdb"}
ensembl:
  base_url: https://rest.ensembl.org
  species: human
  include_clinvar: true
api:
  rate_limit_per_second: 10
  max_retries: 3
  cache_ttl_seconds: 3600
  timeout_seconds: 60
batch:
  batch_size: 2
  identifier_pattern: 'rs\\d+'
  comment_prefix: '#'
  restrict_to_panel: false
  on_identifier_mismatch: warn
""")
    return config_path


@pytest.fixture
def test_config(config_file):
    return load_config(config_file)
