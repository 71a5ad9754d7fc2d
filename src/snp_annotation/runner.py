"""Resumable batch annotation of variant identifiers.

A session moves in_progress -> {paused, completed}; paused -> in_progress on
resume. Each run recomputes the remaining identifiers from the session's
processed set, looks them up in fixed-size batches, and checkpoints after
every batch (results first, then progress), so an interrupted run loses at
most the batch that was in flight.
"""

import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterable

import structlog

from snp_annotation.errors import (
    AnnotationError,
    ConcurrentRunError,
    IdentifierMismatchError,
    ParseError,
    PersistenceError,
    VariantLookupError,
)
from snp_annotation.persistence.protocols import LookupService, ResultStore, SessionStore
from snp_annotation.variants.models import (
    AnnotationResult,
    AnnotationSession,
    SessionStatus,
    identifier_digest,
)

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 10


@dataclass
class ProgressSnapshot:
    """Progress emitted after each checkpointed batch."""
    session_id: str
    processed_count: int
    total_items: int
    batch_number: int
    total_batches: int

    @property
    def percent(self) -> int:
        if self.total_items == 0:
            return 100
        return min(round(self.processed_count / self.total_items * 100), 100)


@dataclass
class BatchFailure:
    """A batch whose lookup failed; its identifiers stay eligible for resume."""
    session_id: str
    batch_number: int
    identifiers: list[str]
    error: str


@dataclass
class RunReport:
    """Summary of one start/resume call.

    Attributes:
        session_id: Session that was run
        status: Status persisted when the run ended
        processed_count: Identifiers processed after the run
        total_items: Identifiers extracted at session creation
        lookups: Lookup calls made during this run
        batches_succeeded: Batches looked up and checkpointed
        batches_failed: Batches whose lookup raised VariantLookupError
        results_written: Annotation results upserted during this run
        failed_identifiers: Identifiers from failed batches
        paused: True if the run stopped because pause() was called
    """
    session_id: str
    status: SessionStatus
    processed_count: int
    total_items: int
    lookups: int = 0
    batches_succeeded: int = 0
    batches_failed: int = 0
    results_written: int = 0
    failed_identifiers: list[str] = field(default_factory=list)
    paused: bool = False


ProgressCallback = Callable[[ProgressSnapshot], None]
FailureCallback = Callable[[BatchFailure], None]


def lookup_identifiers(
    lookup: LookupService,
    identifiers: Iterable[str],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> list[AnnotationResult]:
    """
    Look up identifiers in batches without a session or any persistence.

    Used for single-variant queries. Lookup errors propagate to the caller.

    Raises:
        ParseError: If identifiers is empty
        VariantLookupError: If any batch lookup fails
    """
    canonical = sorted(set(identifiers))
    if not canonical:
        raise ParseError("No identifiers to look up")

    results: list[AnnotationResult] = []
    for i in range(0, len(canonical), batch_size):
        results.extend(lookup.lookup(canonical[i:i + batch_size]))

    logger.info("adhoc_lookup_complete", identifier_count=len(canonical), result_count=len(results))
    return results


class BatchAnnotationRunner:
    """Drives annotation sessions through batched lookups with checkpointing.

    The lookup service and stores are injected; any objects satisfying
    LookupService, SessionStore and ResultStore work. One run may be active
    per session at a time. pause() may be called from any thread and takes
    effect once the in-flight batch has been persisted.
    """

    def __init__(
        self,
        lookup: LookupService,
        sessions: SessionStore,
        results: ResultStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        on_identifier_mismatch: str = "warn",
        on_progress: ProgressCallback | None = None,
        on_batch_failed: FailureCallback | None = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if on_identifier_mismatch not in ("warn", "reject"):
            raise ValueError(f"on_identifier_mismatch must be 'warn' or 'reject', got {on_identifier_mismatch}")

        self.lookup = lookup
        self.sessions = sessions
        self.results = results
        self.batch_size = batch_size
        self.on_identifier_mismatch = on_identifier_mismatch
        self.on_progress = on_progress
        self.on_batch_failed = on_batch_failed

        self._lock = threading.Lock()
        self._active: dict[str, threading.Event] = {}

    @classmethod
    def from_config(
        cls,
        config: "AnnotationConfig",
        store: "AnnotationStore",
        lookup: LookupService | None = None,
        **kwargs,
    ) -> "BatchAnnotationRunner":
        """
        Build a runner using one store for sessions and results.

        Args:
            config: AnnotationConfig instance
            store: AnnotationStore (or any object implementing both store interfaces)
            lookup: Lookup service; defaults to EnsemblVEPClient.from_config(config)
            **kwargs: on_progress / on_batch_failed callbacks
        """
        if lookup is None:
            from snp_annotation.variants.fetch import EnsemblVEPClient
            lookup = EnsemblVEPClient.from_config(config)

        return cls(
            lookup=lookup,
            sessions=store,
            results=store,
            batch_size=config.batch.batch_size,
            on_identifier_mismatch=config.batch.on_identifier_mismatch,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def create_session(
        self,
        source_name: str,
        identifiers: Iterable[str],
        owner_id: str = "local",
    ) -> AnnotationSession:
        """
        Create and persist a new in_progress session.

        The extracted identifier list is stored with the session so later
        resumes can run without the source file, or be checked against it.

        Raises:
            ParseError: If identifiers is empty
            PersistenceError: If the session can't be written
        """
        canonical = sorted(set(identifiers))
        if not canonical:
            raise ParseError(f"No identifiers found in {source_name}")

        session = AnnotationSession(
            id=uuid.uuid4().hex,
            source_name=source_name,
            owner_id=owner_id,
            status=SessionStatus.IN_PROGRESS,
            total_items=len(canonical),
            identifiers=canonical,
            identifier_digest=identifier_digest(canonical),
        )

        try:
            self.sessions.create_session(session)
        except AnnotationError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to create session: {e}") from e

        logger.info(
            "session_created",
            session_id=session.id,
            source_name=source_name,
            owner_id=owner_id,
            total_items=session.total_items,
        )
        return session

    def start(self, session_id: str, all_identifiers: Iterable[str] | None = None) -> RunReport:
        """
        Run a session until every identifier is processed or pause() is called.

        Args:
            session_id: Session to run
            all_identifiers: Identifiers to annotate; None uses the list stored
                             at creation

        Returns:
            RunReport for this run

        Raises:
            ConcurrentRunError: If a run is already active for the session
            SessionNotFoundError: If the session doesn't exist
            ParseError: If the supplied list is empty, or None is given and
                        no list was stored
            IdentifierMismatchError: If the supplied list differs from the
                                     stored one and the policy is "reject"
            PersistenceError: If a checkpoint write fails (session left paused)
        """
        return self._run(session_id, all_identifiers, action="start")

    def resume(self, session_id: str, all_identifiers: Iterable[str] | None = None) -> RunReport:
        """Continue a paused session; identical to start() since remaining work is recomputed."""
        return self._run(session_id, all_identifiers, action="resume")

    def pause(self, session_id: str) -> bool:
        """
        Ask the active run for a session to stop after its current batch.

        Idempotent; a no-op when no run is active.

        Returns:
            True if an active run was signalled
        """
        with self._lock:
            keep_running = self._active.get(session_id)
            if keep_running is None:
                return False
            keep_running.clear()

        logger.info("pause_requested", session_id=session_id)
        return True

    def is_running(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._active

    def run_adhoc(self, identifiers: Iterable[str]) -> list[AnnotationResult]:
        """
        Look up identifiers without a session or any persistence.

        Used for single-variant queries. Lookup errors propagate to the caller.

        Raises:
            ParseError: If identifiers is empty
            VariantLookupError: If any batch lookup fails
        """
        return lookup_identifiers(self.lookup, identifiers, self.batch_size)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    def _batches(self, identifiers: list[str]) -> list[list[str]]:
        return [
            identifiers[i:i + self.batch_size]
            for i in range(0, len(identifiers), self.batch_size)
        ]

    def _acquire(self, session_id: str) -> threading.Event:
        with self._lock:
            if session_id in self._active:
                raise ConcurrentRunError(session_id)
            keep_running = threading.Event()
            keep_running.set()
            self._active[session_id] = keep_running
            return keep_running

    def _release(self, session_id: str) -> None:
        with self._lock:
            self._active.pop(session_id, None)

    def _run(self, session_id: str, all_identifiers: Iterable[str] | None, action: str) -> RunReport:
        keep_running = self._acquire(session_id)
        try:
            return self._run_session(session_id, all_identifiers, keep_running, action)
        finally:
            self._release(session_id)

    def _resolve_identifiers(
        self,
        session: AnnotationSession,
        supplied: Iterable[str] | None,
    ) -> set[str]:
        if supplied is None:
            if not session.identifiers:
                raise ParseError(
                    f"Session {session.id} has no stored identifier list; supply the source file"
                )
            return set(session.identifiers)

        supplied_set = set(supplied)
        if not supplied_set:
            raise ParseError(f"No identifiers supplied for session {session.id}")

        if session.identifier_digest:
            supplied_digest = identifier_digest(supplied_set)
            if supplied_digest != session.identifier_digest:
                if self.on_identifier_mismatch == "reject":
                    raise IdentifierMismatchError(session.id, session.identifier_digest, supplied_digest)
                logger.warning(
                    "identifier_list_mismatch",
                    session_id=session.id,
                    stored_count=len(session.identifiers),
                    supplied_count=len(supplied_set),
                    missing_from_supplied=len(set(session.identifiers) - supplied_set),
                )
        return supplied_set

    def _write_status(self, session_id: str, status: SessionStatus) -> None:
        try:
            self.sessions.update_session(session_id, status=status)
        except AnnotationError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to set session {session_id} {status.value}: {e}") from e

    def _checkpoint(
        self,
        session_id: str,
        batch_results: list[AnnotationResult],
        processed: set[str],
    ) -> None:
        """Persist a batch's results, then the progress that covers them."""
        try:
            self.results.upsert_results(session_id, batch_results)
            self.sessions.update_session(
                session_id,
                processed_items=processed,
                status=SessionStatus.IN_PROGRESS,
            )
        except AnnotationError:
            raise
        except Exception as e:
            raise PersistenceError(f"Checkpoint failed for session {session_id}: {e}") from e

    def _mark_paused(self, session_id: str) -> None:
        """Best-effort status write used when a run halts on an error."""
        try:
            self.sessions.update_session(session_id, status=SessionStatus.PAUSED)
        except Exception as e:
            logger.error("pause_status_write_failed", session_id=session_id, error=str(e))

    def _run_session(
        self,
        session_id: str,
        all_identifiers: Iterable[str] | None,
        keep_running: threading.Event,
        action: str,
    ) -> RunReport:
        session = self.sessions.read_session(session_id)

        if session.status == SessionStatus.COMPLETED:
            logger.info("session_already_completed", session_id=session_id, action=action)
            return RunReport(
                session_id=session_id,
                status=SessionStatus.COMPLETED,
                processed_count=session.processed_count,
                total_items=session.total_items,
            )

        identifiers = self._resolve_identifiers(session, all_identifiers)
        processed = set(session.processed_items)
        remaining = sorted(identifiers - processed)
        batches = self._batches(remaining)

        report = RunReport(
            session_id=session_id,
            status=session.status,
            processed_count=len(processed),
            total_items=session.total_items,
        )

        logger.info(
            "annotation_run_start",
            session_id=session_id,
            action=action,
            total_items=session.total_items,
            already_processed=len(processed),
            remaining=len(remaining),
            batch_size=self.batch_size,
            total_batches=len(batches),
        )

        try:
            if batches:
                self._write_status(session_id, SessionStatus.IN_PROGRESS)

            for batch_number, batch in enumerate(batches, start=1):
                if not keep_running.is_set():
                    report.paused = True
                    break

                try:
                    batch_results = self.lookup.lookup(batch)
                except VariantLookupError as e:
                    report.lookups += 1
                    report.batches_failed += 1
                    report.failed_identifiers.extend(batch)
                    logger.warning(
                        "annotation_batch_failed",
                        session_id=session_id,
                        batch_num=batch_number,
                        total_batches=len(batches),
                        first_identifier=batch[0],
                        error=str(e),
                    )
                    if self.on_batch_failed is not None:
                        self.on_batch_failed(BatchFailure(
                            session_id=session_id,
                            batch_number=batch_number,
                            identifiers=list(batch),
                            error=str(e),
                        ))
                    continue

                report.lookups += 1

                updated = processed | set(batch)
                self._checkpoint(session_id, batch_results, updated)
                processed = updated

                report.batches_succeeded += 1
                report.results_written += len(batch_results)
                report.processed_count = len(processed)

                logger.info(
                    "annotation_batch_complete",
                    session_id=session_id,
                    batch_num=batch_number,
                    total_batches=len(batches),
                    batch_size=len(batch),
                    result_count=len(batch_results),
                    processed_count=len(processed),
                    total_items=session.total_items,
                )

                if self.on_progress is not None:
                    self.on_progress(ProgressSnapshot(
                        session_id=session_id,
                        processed_count=len(processed),
                        total_items=session.total_items,
                        batch_number=batch_number,
                        total_batches=len(batches),
                    ))

            # Stored identifiers count towards completion even if the caller's list omits them
            required = identifiers | set(session.identifiers)
            final_status = (
                SessionStatus.COMPLETED if required <= processed else SessionStatus.PAUSED
            )
            self._write_status(session_id, final_status)

        except PersistenceError as e:
            logger.error("annotation_checkpoint_failed", session_id=session_id, error=str(e))
            self._mark_paused(session_id)
            raise
        except BaseException as e:
            logger.error(
                "annotation_run_aborted",
                session_id=session_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            self._mark_paused(session_id)
            raise

        report.status = final_status

        logger.info(
            "annotation_run_complete",
            session_id=session_id,
            status=final_status.value,
            processed_count=report.processed_count,
            total_items=report.total_items,
            batches_succeeded=report.batches_succeeded,
            batches_failed=report.batches_failed,
            paused=report.paused,
        )
        return report
