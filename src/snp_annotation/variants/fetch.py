"""Fetch variant annotations from the Ensembl VEP REST API."""

import re

import structlog
from requests.exceptions import HTTPError, RequestException

from snp_annotation.api_clients.base import CachedAPIClient
from snp_annotation.config.schema import AnnotationConfig
from snp_annotation.errors import VariantLookupError
from snp_annotation.variants.models import AnnotationResult
from snp_annotation.variants.transform import parse_vep_response

logger = structlog.get_logger()

ENSEMBL_API_URL = "https://rest.ensembl.org"

# VEP answers 400 when none of the posted ids are known; treat as "no data"
NOT_FOUND_STATUSES = {400, 404}

_CHROMOSOME_RE = re.compile(r"^(chr)?([0-9]{1,2}|X|Y|MT?)$", re.IGNORECASE)
_ALLELE_RE = re.compile(r"^[ACGTN-]+$", re.IGNORECASE)


class EnsemblVEPClient:
    """Lookup service backed by Ensembl's Variant Effect Predictor.

    lookup() is the batch entry point used by the runner: one POST per
    batch, results returned in no particular order, identifiers with no
    annotation simply absent from the output.
    """

    def __init__(
        self,
        http: CachedAPIClient,
        base_url: str = ENSEMBL_API_URL,
        species: str = "human",
        include_clinvar: bool = True,
    ):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.species = species
        self.include_clinvar = include_clinvar

    def _params(self) -> dict[str, int]:
        return {"clinvar": 1} if self.include_clinvar else {}

    def lookup(self, identifiers: list[str]) -> list[AnnotationResult]:
        """
        Annotate a batch of variant identifiers.

        Args:
            identifiers: rsIDs to annotate (at most 200 per VEP request)

        Returns:
            AnnotationResult per identifier VEP could annotate

        Raises:
            VariantLookupError: On transport or service failure
        """
        if not identifiers:
            return []

        url = f"{self.base_url}/vep/{self.species}/id"
        logger.debug("vep_lookup_start", identifier_count=len(identifiers))

        try:
            records = self.http.post_json(url, {"ids": list(identifiers)}, params=self._params())
        except HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in NOT_FOUND_STATUSES:
                logger.warning("vep_lookup_not_found", identifiers=list(identifiers), status=status)
                return []
            raise VariantLookupError(f"Ensembl VEP error ({status}): {e}", identifiers) from e
        except (RequestException, ValueError) as e:
            raise VariantLookupError(f"Ensembl VEP request failed: {e}", identifiers) from e

        if not isinstance(records, list):
            raise VariantLookupError(
                f"Unexpected VEP response type: {type(records).__name__}",
                identifiers,
            )

        results = parse_vep_response(records)
        logger.debug(
            "vep_lookup_complete",
            identifier_count=len(identifiers),
            result_count=len(results),
        )
        return results

    def lookup_region(self, chromosome: str, position: int, allele: str) -> list[AnnotationResult]:
        """
        Annotate a single-nucleotide change given by genomic position.

        Args:
            chromosome: Chromosome name, with or without "chr" prefix
            position: 1-based GRCh38 position
            allele: Alternate allele

        Raises:
            ValueError: If the chromosome, position or allele is malformed
            VariantLookupError: On transport or service failure
        """
        match = _CHROMOSOME_RE.match(chromosome)
        if not match:
            raise ValueError(f"Invalid chromosome: {chromosome}")
        if position < 1:
            raise ValueError(f"Invalid position: {position}")
        if not _ALLELE_RE.match(allele):
            raise ValueError(f"Invalid allele: {allele}")

        region = f"{match.group(2)}:{position}-{position}"
        url = f"{self.base_url}/vep/{self.species}/region/{region}/{allele.upper()}"

        try:
            records = self.http.get_json(url, params=self._params())
        except HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in NOT_FOUND_STATUSES:
                logger.warning("vep_region_not_found", region=region, allele=allele, status=status)
                return []
            raise VariantLookupError(f"Ensembl VEP error ({status}): {e}", [region]) from e
        except (RequestException, ValueError) as e:
            raise VariantLookupError(f"Ensembl VEP request failed: {e}", [region]) from e

        return parse_vep_response(records if isinstance(records, list) else [])

    def close(self) -> None:
        """Close the cached HTTP session."""
        self.http.close()

    @classmethod
    def from_config(cls, config: AnnotationConfig) -> "EnsemblVEPClient":
        """Create a VEP client with a cached HTTP client built from config."""
        return cls(
            http=CachedAPIClient.from_config(config),
            base_url=config.ensembl.base_url,
            species=config.ensembl.species,
            include_clinvar=config.ensembl.include_clinvar,
        )
