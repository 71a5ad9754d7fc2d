"""snp-annotation: resumable batch annotation of SNP identifiers against Ensembl VEP."""

__version__ = "0.1.0"
