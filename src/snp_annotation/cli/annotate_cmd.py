"""Annotate and resume commands: run checkpointed annotation sessions.

Flow for `annotate`:
1. Load config (with CLI overrides)
2. Extract rsIDs from the input file
3. Create a session in DuckDB
4. Run batches against Ensembl VEP, checkpointing after each
5. Record provenance

Ctrl-C requests a pause: the current batch is finished and persisted, then
the session is left `paused` for a later `resume`.
"""

import logging
import signal
import sys
from contextlib import contextmanager
from pathlib import Path

import click

from snp_annotation.config.loader import load_config_with_overrides
from snp_annotation.errors import ParseError
from snp_annotation.persistence import AnnotationStore, ProvenanceTracker
from snp_annotation.runner import BatchAnnotationRunner, BatchFailure, ProgressSnapshot, RunReport
from snp_annotation.variants import EnsemblVEPClient, SessionStatus, read_identifier_file

logger = logging.getLogger(__name__)


def _echo_progress(snapshot: ProgressSnapshot) -> None:
    click.echo(
        f"  Batch {snapshot.batch_number}/{snapshot.total_batches}: "
        f"{snapshot.processed_count}/{snapshot.total_items} processed ({snapshot.percent}%)"
    )


def _echo_batch_failure(failure: BatchFailure) -> None:
    click.echo(click.style(
        f"  Batch {failure.batch_number} failed (starting with {failure.identifiers[0]}): "
        f"{failure.error}. Will retry on resume.",
        fg='red'
    ), err=True)


@contextmanager
def pause_on_interrupt(runner: BatchAnnotationRunner, session_id: str):
    """Turn SIGINT into a cooperative pause for the duration of a run."""
    def _handler(signum, frame):
        if runner.pause(session_id):
            click.echo(click.style(
                "\nPause requested - finishing current batch...",
                fg='yellow'
            ), err=True)

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _echo_report(report: RunReport, config) -> None:
    click.echo()
    click.echo(click.style("=== Run Summary ===", bold=True))
    click.echo(f"Session: {report.session_id}")
    click.echo(f"Processed: {report.processed_count}/{report.total_items}")
    click.echo(f"Results Written: {report.results_written}")
    click.echo(f"Batches: {report.batches_succeeded} succeeded, {report.batches_failed} failed")
    click.echo(f"DuckDB Path: {config.duckdb_path}")
    click.echo()

    if report.status == SessionStatus.COMPLETED:
        click.echo(click.style("Annotation complete!", fg='green', bold=True))
    elif report.paused:
        click.echo(click.style(
            f"Session paused. Progress saved; continue with: snp-annotate resume {report.session_id}",
            fg='yellow'
        ))
    else:
        click.echo(click.style(
            f"Session paused with {len(report.failed_identifiers)} identifiers from failed batches. "
            f"Retry with: snp-annotate resume {report.session_id}",
            fg='yellow'
        ))


def _run_with_provenance(config, store, runner, session_id, identifiers, action):
    provenance = ProvenanceTracker.from_config(config)
    with pause_on_interrupt(runner, session_id):
        if action == 'start':
            report = runner.start(session_id, identifiers)
        else:
            report = runner.resume(session_id, identifiers)

    provenance.record_step(f'{action}_annotation_run', {
        'status': report.status.value,
        'processed_count': report.processed_count,
        'total_items': report.total_items,
        'lookups': report.lookups,
        'batches_succeeded': report.batches_succeeded,
        'batches_failed': report.batches_failed,
        'results_written': report.results_written,
        'paused': report.paused,
    })
    provenance.save_to_store(store, session_id)
    return report


@click.command('annotate')
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    '--owner',
    default='local',
    show_default=True,
    help='Owner id recorded on the session'
)
@click.option(
    '--batch-size',
    type=click.IntRange(1, 200),
    default=None,
    help='Identifiers per lookup/checkpoint (overrides config)'
)
@click.option(
    '--panel/--no-panel',
    default=None,
    help='Restrict to the curated relevant-SNP panel (overrides config)'
)
@click.pass_context
def annotate(ctx, input_file, owner, batch_size, panel):
    """Extract rsIDs from INPUT_FILE and annotate them in a new session.

    Examples:

        # Annotate a 23andMe raw data export
        snp-annotate annotate genome.txt

        # Only the curated medically relevant SNPs, bigger batches
        snp-annotate annotate genome.txt --panel --batch-size 50
    """
    config_path = ctx.obj['config_path']
    click.echo(click.style("=== SNP Annotation ===", bold=True))
    click.echo()

    store = None
    client = None
    try:
        config = load_config_with_overrides(config_path, {
            'batch.batch_size': batch_size,
            'batch.restrict_to_panel': panel,
        })

        click.echo(f"Reading identifiers from {input_file}...")
        identifiers = read_identifier_file(
            input_file,
            pattern=config.batch.identifier_pattern,
            comment_prefix=config.batch.comment_prefix,
            restrict_to_panel=config.batch.restrict_to_panel,
        )

        if not identifiers:
            click.echo(click.style(
                "Nothing to process: no matching identifiers found in the file.",
                fg='yellow'
            ))
            return

        click.echo(click.style(f"  Found {len(identifiers)} distinct identifiers", fg='green'))
        click.echo()

        store = AnnotationStore.from_config(config)
        client = EnsemblVEPClient.from_config(config)
        runner = BatchAnnotationRunner.from_config(
            config,
            store,
            lookup=client,
            on_progress=_echo_progress,
            on_batch_failed=_echo_batch_failure,
        )

        session = runner.create_session(input_file.name, identifiers, owner_id=owner)
        click.echo(f"Created session {session.id}")
        click.echo(f"Annotating in batches of {config.batch.batch_size} (Ctrl-C to pause)...")

        report = _run_with_provenance(config, store, runner, session.id, identifiers, 'start')
        _echo_report(report, config)

    except ParseError as e:
        click.echo(click.style(f"Nothing to process: {e}", fg='yellow'))
    except Exception as e:
        click.echo(click.style(f"Annotation failed: {e}", fg='red'), err=True)
        logger.exception("Annotate command failed")
        sys.exit(1)
    finally:
        if client is not None:
            client.close()
        if store is not None:
            store.close()


@click.command('resume')
@click.argument('session_id')
@click.option(
    '--file', 'input_file',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help='Re-read identifiers from this file instead of the stored list'
)
@click.option(
    '--batch-size',
    type=click.IntRange(1, 200),
    default=None,
    help='Identifiers per lookup/checkpoint (overrides config)'
)
@click.pass_context
def resume(ctx, session_id, input_file, batch_size):
    """Resume a paused annotation session.

    Identifiers already processed are skipped; batches that failed in
    earlier runs are retried.
    """
    config_path = ctx.obj['config_path']
    click.echo(click.style("=== Resume SNP Annotation ===", bold=True))
    click.echo()

    store = None
    client = None
    try:
        config = load_config_with_overrides(config_path, {'batch.batch_size': batch_size})
        store = AnnotationStore.from_config(config)

        session = store.read_session(session_id)
        click.echo(f"Session: {session.id} ({session.source_name})")
        click.echo(f"  Status: {session.status.value}")
        click.echo(f"  Progress: {session.processed_count}/{session.total_items}")
        click.echo()

        if session.status == SessionStatus.COMPLETED:
            click.echo(click.style("Session already completed; nothing to resume.", fg='green'))
            return

        identifiers = None
        if input_file is not None:
            identifiers = read_identifier_file(
                input_file,
                pattern=config.batch.identifier_pattern,
                comment_prefix=config.batch.comment_prefix,
                restrict_to_panel=config.batch.restrict_to_panel,
            )
            if not identifiers:
                raise ParseError(f"No identifiers found in {input_file}; session left {session.status.value}")

        client = EnsemblVEPClient.from_config(config)
        runner = BatchAnnotationRunner.from_config(
            config,
            store,
            lookup=client,
            on_progress=_echo_progress,
            on_batch_failed=_echo_batch_failure,
        )

        click.echo(f"Annotating in batches of {config.batch.batch_size} (Ctrl-C to pause)...")
        report = _run_with_provenance(config, store, runner, session.id, identifiers, 'resume')
        _echo_report(report, config)

    except ParseError as e:
        click.echo(click.style(f"Nothing to process: {e}", fg='yellow'))
    except Exception as e:
        click.echo(click.style(f"Resume failed: {e}", fg='red'), err=True)
        logger.exception("Resume command failed")
        sys.exit(1)
    finally:
        if client is not None:
            client.close()
        if store is not None:
            store.close()
