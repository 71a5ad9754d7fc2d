"""Tests for the Ensembl VEP lookup client."""

from unittest.mock import Mock

import pytest
import requests

from snp_annotation.errors import VariantLookupError
from snp_annotation.variants import EnsemblVEPClient


def _http_error(status_code):
    response = Mock()
    response.status_code = status_code
    return requests.exceptions.HTTPError(f"{status_code} Error", response=response)


@pytest.fixture
def http():
    return Mock()


@pytest.fixture
def client(http):
    return EnsemblVEPClient(http=http, base_url="https://rest.ensembl.org/")


def test_lookup_posts_batch(client, http):
    """Test that a batch becomes a single POST to the VEP id endpoint."""
    http.post_json.return_value = [
        {"id": "rs4680", "most_severe_consequence": "missense_variant"},
    ]

    results = client.lookup(["rs4680", "rs1"])

    http.post_json.assert_called_once_with(
        "https://rest.ensembl.org/vep/human/id",
        {"ids": ["rs4680", "rs1"]},
        params={"clinvar": 1},
    )
    assert [r.identifier for r in results] == ["rs4680"]


def test_lookup_without_clinvar(http):
    """Test that include_clinvar=False drops the clinvar parameter."""
    client = EnsemblVEPClient(http=http, include_clinvar=False)
    http.post_json.return_value = []

    client.lookup(["rs1"])

    assert http.post_json.call_args.kwargs["params"] == {}


def test_lookup_empty_batch_makes_no_request(client, http):
    """Test that an empty batch returns immediately."""
    assert client.lookup([]) == []
    http.post_json.assert_not_called()


@pytest.mark.parametrize("status", [400, 404])
def test_lookup_unknown_ids_returns_empty(client, http, status):
    """Test that VEP's not-found statuses mean no annotations, not failure."""
    http.post_json.side_effect = _http_error(status)

    assert client.lookup(["rs0"]) == []


def test_lookup_server_error_raises(client, http):
    """Test that a 5xx surfaces as VariantLookupError carrying the batch."""
    http.post_json.side_effect = _http_error(503)

    with pytest.raises(VariantLookupError) as exc_info:
        client.lookup(["rs1", "rs2"])

    assert exc_info.value.identifiers == ["rs1", "rs2"]
    assert "503" in str(exc_info.value)


def test_lookup_connection_error_raises(client, http):
    """Test that transport failures surface as VariantLookupError."""
    http.post_json.side_effect = requests.exceptions.ConnectionError("unreachable")

    with pytest.raises(VariantLookupError):
        client.lookup(["rs1"])


def test_lookup_invalid_json_raises(client, http):
    """Test that undecodable or unexpected bodies are lookup failures."""
    http.post_json.side_effect = ValueError("Expecting value")
    with pytest.raises(VariantLookupError):
        client.lookup(["rs1"])

    http.post_json.side_effect = None
    http.post_json.return_value = {"error": "bad"}
    with pytest.raises(VariantLookupError):
        client.lookup(["rs1"])


def test_variant_lookup_error_is_builtin_lookup_error(client, http):
    """Test that callers catching LookupError also see lookup failures."""
    http.post_json.side_effect = _http_error(500)

    with pytest.raises(LookupError):
        client.lookup(["rs1"])


def test_lookup_region(client, http):
    """Test region lookups build the VEP region URL."""
    http.get_json.return_value = [{"input": "22 19963748 19963748 G/A", "id": "rs4680"}]

    results = client.lookup_region("chr22", 19963748, "a")

    http.get_json.assert_called_once_with(
        "https://rest.ensembl.org/vep/human/region/22:19963748-19963748/A",
        params={"clinvar": 1},
    )
    assert results[0].identifier == "rs4680"


@pytest.mark.parametrize("chromosome,position,allele", [
    ("chrZ", 100, "A"),
    ("22", 0, "A"),
    ("22", 100, "Q"),
])
def test_lookup_region_validates_input(client, http, chromosome, position, allele):
    """Test malformed region arguments are rejected before any request."""
    with pytest.raises(ValueError):
        client.lookup_region(chromosome, position, allele)

    http.get_json.assert_not_called()


def test_from_config(test_config):
    """Test building the client from configuration."""
    client = EnsemblVEPClient.from_config(test_config)

    assert client.base_url == "https://rest.ensembl.org"
    assert client.species == "human"
    assert client.http.rate_limit == 10


def test_close_closes_http_session(client, http):
    """Test that closing the client closes its cached session."""
    client.close()

    http.close.assert_called_once()
