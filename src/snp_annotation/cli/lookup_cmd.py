"""Lookup command: ad hoc annotation of a single variant, no session stored."""

import logging
import re
import sys

import click

from snp_annotation.config.loader import load_config
from snp_annotation.errors import AnnotationError
from snp_annotation.runner import lookup_identifiers
from snp_annotation.variants import EnsemblVEPClient

logger = logging.getLogger(__name__)

_REGION_RE = re.compile(r"^(?P<chromosome>[^:\s]+):(?P<position>\d+)$")


def _echo_result(result) -> None:
    click.echo(click.style(result.identifier, bold=True))
    click.echo(f"  Consequence:           {result.most_severe_consequence or '-'}")
    click.echo(f"  Gene:                  {result.gene or '-'}")
    click.echo(f"  Transcript:            {result.transcript_id or '-'}")
    click.echo(f"  Amino Acid Change:     {result.amino_acid_change or '-'}")
    click.echo(f"  Codon Change:          {result.codon_change or '-'}")
    click.echo(f"  Clinical Significance: {result.clinical_significance or '-'}")


@click.command('lookup')
@click.argument('rsids', nargs=-1)
@click.option(
    '--region',
    default=None,
    help='Genomic position as CHROM:POS (GRCh38), used with --allele'
)
@click.option(
    '--allele',
    default=None,
    help='Alternate allele for --region lookups'
)
@click.pass_context
def lookup(ctx, rsids, region, allele):
    """Look up one or more rsIDs (or a position) without creating a session.

    Examples:

        snp-annotate lookup rs4680

        snp-annotate lookup --region 22:19963748 --allele A
    """
    if not rsids and not region:
        raise click.UsageError("Provide at least one rsID or --region")
    if region and not allele:
        raise click.UsageError("--region requires --allele")

    client = None
    try:
        config = load_config(ctx.obj['config_path'])

        if region:
            match = _REGION_RE.match(region)
            if not match:
                raise click.BadParameter(f"Expected CHROM:POS, got {region}", param_hint='--region')
        else:
            pattern = re.compile(config.batch.identifier_pattern)
            invalid = [rsid for rsid in rsids if not pattern.fullmatch(rsid)]
            if invalid:
                raise click.BadParameter(
                    f"Invalid rsID format: {', '.join(invalid)} (e.g. rs12345)",
                    param_hint='RSIDS',
                )

        client = EnsemblVEPClient.from_config(config)
        if region:
            annotations = client.lookup_region(
                match.group('chromosome'),
                int(match.group('position')),
                allele,
            )
        else:
            annotations = lookup_identifiers(client, rsids, config.batch.batch_size)

        if not annotations:
            click.echo(click.style(
                "No results found: the variant is unknown or has no annotations.",
                fg='yellow'
            ))
            return

        for result in annotations:
            _echo_result(result)
            click.echo()

    except click.ClickException:
        raise
    except (AnnotationError, ValueError) as e:
        click.echo(click.style(f"Lookup failed: {e}", fg='red'), err=True)
        logger.exception("Lookup command failed")
        sys.exit(1)
    finally:
        if client is not None:
            client.close()
