"""Export of annotation results."""

from snp_annotation.output.writers import write_session_results

__all__ = ["write_session_results"]
