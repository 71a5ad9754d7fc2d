"""Extract candidate variant identifiers from raw genotype / VCF text."""

import re
from pathlib import Path
from typing import Iterable

import structlog

from snp_annotation.variants.panel import RELEVANT_SNPS

logger = structlog.get_logger()

DEFAULT_IDENTIFIER_PATTERN = r"rs\d+"
DEFAULT_COMMENT_PREFIX = "#"


def extract_identifiers(
    text: str,
    pattern: str = DEFAULT_IDENTIFIER_PATTERN,
    comment_prefix: str = DEFAULT_COMMENT_PREFIX,
    panel: Iterable[str] | None = None,
) -> set[str]:
    """Extract distinct identifiers from line-oriented variant text.

    Works on 23andMe/AncestryDNA raw exports and VCF bodies alike: every
    whitespace-separated token that fully matches the pattern is collected,
    whatever column it sits in.

    Args:
        text: Full text content of the input file
        pattern: Regex a token must fully match (default: rs followed by digits)
        comment_prefix: Lines starting with this prefix are skipped entirely
        panel: Optional set of allowed identifiers; others are dropped

    Returns:
        Set of identifiers. Empty when nothing matched - callers decide whether
        that is an error.
    """
    matcher = re.compile(pattern)
    allowed = set(panel) if panel is not None else None

    identifiers: set[str] = set()
    skipped_comments = 0

    for line in text.splitlines():
        if line.startswith(comment_prefix):
            skipped_comments += 1
            continue
        for token in line.split():
            if not matcher.fullmatch(token):
                continue
            if allowed is not None and token not in allowed:
                continue
            identifiers.add(token)

    logger.debug(
        "extract_identifiers_complete",
        identifier_count=len(identifiers),
        skipped_comment_lines=skipped_comments,
        panel_filter=allowed is not None,
    )

    return identifiers


def read_identifier_file(
    path: Path | str,
    pattern: str = DEFAULT_IDENTIFIER_PATTERN,
    comment_prefix: str = DEFAULT_COMMENT_PREFIX,
    restrict_to_panel: bool = False,
) -> set[str]:
    """Read a variant file from disk and extract its identifiers.

    Undecodable bytes are replaced rather than raising; raw genotype exports
    occasionally carry stray Latin-1 characters in their header comments.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8", errors="replace")

    identifiers = extract_identifiers(
        text,
        pattern=pattern,
        comment_prefix=comment_prefix,
        panel=RELEVANT_SNPS if restrict_to_panel else None,
    )

    logger.info(
        "read_identifier_file",
        path=str(path),
        identifier_count=len(identifiers),
        restrict_to_panel=restrict_to_panel,
    )

    return identifiers
