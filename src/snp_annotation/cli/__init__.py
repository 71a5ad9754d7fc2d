"""Command-line interface for snp-annotate."""
