"""Main CLI entry point for snp-annotate.

Provides command group with global options and subcommands for annotation sessions.
"""

import logging
from pathlib import Path

import click

from snp_annotation import __version__
from snp_annotation.config.loader import load_config
from snp_annotation.cli.annotate_cmd import annotate, resume
from snp_annotation.cli.lookup_cmd import lookup
from snp_annotation.cli.sessions_cmd import delete, export, results, sessions


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@click.group()
@click.option(
    '--config',
    type=click.Path(exists=True, path_type=Path),
    default='config/default.yaml',
    help='Path to annotation configuration YAML file'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose logging (DEBUG level)'
)
@click.pass_context
def cli(ctx, config, verbose):
    """snp-annotate: resumable batch annotation of SNP rsIDs with Ensembl VEP.

    Extracts rsIDs from raw genotype or VCF files, annotates them in
    checkpointed batches, and lets interrupted sessions resume where they
    stopped.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Verbose logging enabled")


@cli.command()
@click.pass_context
def info(ctx):
    """Display pipeline information and configuration summary."""
    config_path = ctx.obj['config_path']

    click.echo(f"snp-annotate v{__version__}")
    click.echo(f"Config: {config_path}")
    click.echo()

    try:
        config = load_config(config_path)

        config_hash = config.config_hash()
        click.echo(f"Config Hash: {config_hash[:16]}...")
        click.echo()

        click.echo(click.style("Ensembl VEP:", bold=True))
        click.echo(f"  Base URL: {config.ensembl.base_url}")
        click.echo(f"  Species:  {config.ensembl.species}")
        click.echo(f"  ClinVar:  {'yes' if config.ensembl.include_clinvar else 'no'}")
        click.echo()

        click.echo(click.style("Batching:", bold=True))
        click.echo(f"  Batch Size: {config.batch.batch_size}")
        click.echo(f"  Identifier Pattern: {config.batch.identifier_pattern}")
        click.echo(f"  Restrict to Panel: {config.batch.restrict_to_panel}")
        click.echo(f"  On Identifier Mismatch: {config.batch.on_identifier_mismatch}")
        click.echo()

        click.echo(click.style("Paths:", bold=True))
        click.echo(f"  Data Directory: {config.data_dir}")
        click.echo(f"  Cache Directory: {config.cache_dir}")
        click.echo(f"  DuckDB Path: {config.duckdb_path}")
        click.echo()

        click.echo(click.style("API Configuration:", bold=True))
        click.echo(f"  Rate Limit: {config.api.rate_limit_per_second} req/s")
        click.echo(f"  Max Retries: {config.api.max_retries}")
        click.echo(f"  Cache TTL: {config.api.cache_ttl_seconds}s")
        click.echo(f"  Timeout: {config.api.timeout_seconds}s")

    except Exception as e:
        click.echo(click.style(f"Error loading config: {e}", fg='red'), err=True)
        ctx.exit(1)


# Register commands
cli.add_command(annotate)
cli.add_command(resume)
cli.add_command(sessions)
cli.add_command(results)
cli.add_command(export)
cli.add_command(delete)
cli.add_command(lookup)


if __name__ == '__main__':
    cli()
