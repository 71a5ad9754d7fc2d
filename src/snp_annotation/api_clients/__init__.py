"""HTTP clients for external annotation services."""

from snp_annotation.api_clients.base import CachedAPIClient

__all__ = ["CachedAPIClient"]
