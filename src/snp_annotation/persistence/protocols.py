"""Structural interfaces the runner depends on.

Any object with these methods can back a BatchAnnotationRunner; the DuckDB
AnnotationStore implements both, tests use in-memory fakes.
"""

from typing import Any, Protocol

from snp_annotation.variants.models import AnnotationResult, AnnotationSession


class SessionStore(Protocol):
    def create_session(self, session: AnnotationSession) -> str: ...

    def update_session(self, session_id: str, **fields: Any) -> None: ...

    def read_session(self, session_id: str) -> AnnotationSession: ...

    def list_sessions(self, owner_id: str | None = None) -> list[AnnotationSession]: ...


class ResultStore(Protocol):
    def upsert_results(self, session_id: str, results: list[AnnotationResult]) -> None: ...

    def list_results(self, session_id: str) -> list[AnnotationResult]: ...


class LookupService(Protocol):
    def lookup(self, identifiers: list[str]) -> list[AnnotationResult]: ...
