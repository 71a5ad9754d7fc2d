"""Session inspection commands: list sessions, show and export results, delete."""

import logging
import sys
from pathlib import Path

import click

from snp_annotation.config.loader import load_config
from snp_annotation.errors import SessionNotFoundError
from snp_annotation.output import write_session_results
from snp_annotation.persistence import AnnotationStore, ProvenanceTracker
from snp_annotation.variants import SessionStatus

logger = logging.getLogger(__name__)

_STATUS_COLORS = {
    SessionStatus.COMPLETED: 'green',
    SessionStatus.PAUSED: 'yellow',
    SessionStatus.IN_PROGRESS: 'cyan',
}


@click.command('sessions')
@click.option(
    '--owner',
    default=None,
    help='Only list sessions for this owner id'
)
@click.pass_context
def sessions(ctx, owner):
    """List annotation sessions, newest first."""
    store = None
    try:
        config = load_config(ctx.obj['config_path'])
        store = AnnotationStore.from_config(config)
        found = store.list_sessions(owner)

        if not found:
            click.echo("No annotation sessions found.")
            return

        click.echo(click.style(f"{'ID':<34} {'STATUS':<12} {'PROGRESS':>12}  CREATED              SOURCE", bold=True))
        for session in found:
            progress = f"{session.processed_count}/{session.total_items}"
            status = click.style(f"{session.status.value:<12}", fg=_STATUS_COLORS[session.status])
            created = session.created_at.strftime("%Y-%m-%d %H:%M:%S")
            click.echo(f"{session.id:<34} {status} {progress:>12}  {created}  {session.source_name}")

    except Exception as e:
        click.echo(click.style(f"Failed to list sessions: {e}", fg='red'), err=True)
        logger.exception("Sessions command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()


@click.command('results')
@click.argument('session_id')
@click.option(
    '--limit',
    type=click.IntRange(min=1),
    default=None,
    help='Show at most this many results'
)
@click.pass_context
def results(ctx, session_id, limit):
    """Show annotation results stored for SESSION_ID."""
    store = None
    try:
        config = load_config(ctx.obj['config_path'])
        store = AnnotationStore.from_config(config)
        session = store.read_session(session_id)
        annotations = store.list_results(session_id)

        click.echo(click.style(f"=== {session.source_name} ({session.status.value}) ===", bold=True))
        click.echo(f"Processed {session.processed_count}/{session.total_items}, {len(annotations)} annotated")
        click.echo()

        shown = annotations[:limit] if limit else annotations
        for result in shown:
            click.echo("\t".join([
                result.identifier,
                result.gene or "-",
                result.most_severe_consequence or "-",
                result.amino_acid_change or "-",
                result.clinical_significance or "-",
            ]))

        if limit and len(annotations) > limit:
            click.echo(f"... {len(annotations) - limit} more")

    except SessionNotFoundError as e:
        click.echo(click.style(str(e), fg='red'), err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(click.style(f"Failed to load results: {e}", fg='red'), err=True)
        logger.exception("Results command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()


@click.command('export')
@click.argument('session_id')
@click.option(
    '--output-dir',
    type=click.Path(path_type=Path),
    default=None,
    help='Output directory (default: <data_dir>/exports)'
)
@click.pass_context
def export(ctx, session_id, output_dir):
    """Export SESSION_ID results to TSV and Parquet with a provenance sidecar."""
    store = None
    try:
        config = load_config(ctx.obj['config_path'])
        store = AnnotationStore.from_config(config)
        session = store.read_session(session_id)

        if session.status != SessionStatus.COMPLETED:
            click.echo(click.style(
                f"Session is {session.status.value}; exporting partial results "
                f"({session.processed_count}/{session.total_items}).",
                fg='yellow'
            ))

        provenance = ProvenanceTracker.from_config(config)
        provenance.record_step('export_results', {
            'session_id': session_id,
            'prior_runs': len(ProvenanceTracker.load_from_store(store, session_id)),
        })

        paths = write_session_results(
            store.results_frame(session_id),
            session,
            output_dir or Path(config.data_dir) / "exports",
            provenance_metadata=provenance.create_metadata(),
        )

        click.echo(click.style("Export complete:", fg='green'))
        for kind, path in paths.items():
            click.echo(f"  {kind}: {path}")

    except SessionNotFoundError as e:
        click.echo(click.style(str(e), fg='red'), err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(click.style(f"Export failed: {e}", fg='red'), err=True)
        logger.exception("Export command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()


@click.command('delete')
@click.argument('session_id')
@click.option('--yes', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def delete(ctx, session_id, yes):
    """Delete SESSION_ID and all of its stored results."""
    store = None
    try:
        config = load_config(ctx.obj['config_path'])
        store = AnnotationStore.from_config(config)
        session = store.read_session(session_id)

        if not yes:
            click.confirm(
                f"Delete session {session.id} ({session.source_name}) and its results?",
                abort=True,
            )

        removed = store.delete_session(session_id)
        click.echo(click.style(f"Deleted session {session_id} ({removed} results)", fg='green'))

    except SessionNotFoundError as e:
        click.echo(click.style(str(e), fg='red'), err=True)
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
