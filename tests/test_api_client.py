"""Tests for API client with caching and retry logic."""

from unittest.mock import Mock, patch

import pytest
import requests

from snp_annotation.api_clients.base import CachedAPIClient


def _response(status_code=200, from_cache=False, json_data=None):
    response = Mock()
    response.status_code = status_code
    response.from_cache = from_cache
    response.json.return_value = json_data
    if status_code >= 400:
        response.raise_for_status = Mock(
            side_effect=requests.exceptions.HTTPError(f"{status_code} Error", response=response)
        )
    else:
        response.raise_for_status = Mock()
    return response


def test_client_creates_cache_dir(tmp_path):
    """Test that client creates cache directory if it doesn't exist."""
    cache_dir = tmp_path / "nonexistent_cache"

    assert not cache_dir.exists()

    CachedAPIClient(cache_dir=cache_dir)

    assert cache_dir.is_dir()


def test_client_caches_post_requests(tmp_path):
    """Test that the cached session is configured to cache POST bodies."""
    client = CachedAPIClient(cache_dir=tmp_path / "cache")

    assert "POST" in client.session.settings.allowable_methods


def test_client_caches_response(tmp_path):
    """Test that responses pass through the cached session."""
    client = CachedAPIClient(cache_dir=tmp_path / "cache", rate_limit=100)
    test_url = "https://api.example.com/test"

    with patch("time.sleep"), patch.object(client.session, "request") as mock_request:
        mock_request.return_value = _response(json_data={"data": "test"})
        assert client.get_json(test_url) == {"data": "test"}

        mock_request.return_value = _response(from_cache=True, json_data={"data": "test"})
        assert client.get_json(test_url) == {"data": "test"}

        assert mock_request.call_count == 2
        assert mock_request.call_args[0] == ("GET", test_url)


def test_post_json_sends_payload(tmp_path):
    """Test that post_json posts JSON with content negotiation headers."""
    client = CachedAPIClient(cache_dir=tmp_path / "cache", timeout=45)
    test_url = "https://rest.ensembl.org/vep/human/id"

    with patch("time.sleep"), patch.object(client.session, "request") as mock_request:
        mock_request.return_value = _response(json_data=[{"id": "rs4680"}])

        data = client.post_json(test_url, {"ids": ["rs4680"]}, params={"clinvar": 1})

    assert data == [{"id": "rs4680"}]
    args, kwargs = mock_request.call_args
    assert args == ("POST", test_url)
    assert kwargs["json"] == {"ids": ["rs4680"]}
    assert kwargs["params"] == {"clinvar": 1}
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["timeout"] == 45


def test_client_from_config(test_config, tmp_path):
    """Test creating client from AnnotationConfig."""
    client = CachedAPIClient.from_config(test_config)

    assert client.rate_limit == 10
    assert client.max_retries == 3
    assert client.timeout == 60
    assert client.cache_dir == tmp_path / "cache"


def test_rate_limit_respected(tmp_path):
    """Test that rate limiting sleeps between non-cached requests."""
    client = CachedAPIClient(cache_dir=tmp_path / "cache", rate_limit=10)

    with patch("time.sleep") as mock_sleep, patch.object(client.session, "request") as mock_request:
        mock_request.return_value = _response()

        client.get("https://api.example.com/test")

        mock_sleep.assert_called_once()
        # 10 req/sec = 0.1 seconds between requests
        assert mock_sleep.call_args[0][0] == pytest.approx(0.1)


def test_rate_limit_skipped_for_cached(tmp_path):
    """Test that cached requests don't trigger rate limiting sleep."""
    client = CachedAPIClient(cache_dir=tmp_path / "cache", rate_limit=10)

    with patch("time.sleep") as mock_sleep, patch.object(client.session, "request") as mock_request:
        mock_request.return_value = _response(from_cache=True)

        client.get("https://api.example.com/test")

        mock_sleep.assert_not_called()


def test_server_error_retried(tmp_path):
    """Test that a 5xx response is retried and a later success returned."""
    client = CachedAPIClient(cache_dir=tmp_path / "cache", max_retries=3)

    with patch("time.sleep"), patch.object(client.session, "request") as mock_request:
        mock_request.side_effect = [_response(503), _response(json_data={"ok": True})]

        assert client.get_json("https://api.example.com/test") == {"ok": True}
        assert mock_request.call_count == 2


def test_client_error_not_retried(tmp_path):
    """Test that a 4xx other than 429 raises immediately."""
    client = CachedAPIClient(cache_dir=tmp_path / "cache", max_retries=3)

    with patch("time.sleep"), patch.object(client.session, "request") as mock_request:
        mock_request.return_value = _response(404)

        with pytest.raises(requests.exceptions.HTTPError):
            client.get("https://api.example.com/missing")

        assert mock_request.call_count == 1


def test_retries_exhausted_reraises(tmp_path):
    """Test that the last error is re-raised once retries run out."""
    client = CachedAPIClient(cache_dir=tmp_path / "cache", max_retries=2)

    with patch("time.sleep"), patch.object(client.session, "request") as mock_request:
        mock_request.side_effect = requests.exceptions.ConnectionError("unreachable")

        with pytest.raises(requests.exceptions.ConnectionError):
            client.get("https://api.example.com/test")

        assert mock_request.call_count == 2


def test_close_closes_session(tmp_path):
    """Test that close releases the cached session."""
    client = CachedAPIClient(cache_dir=tmp_path / "cache")

    with patch.object(client.session, "close") as mock_close:
        client.close()

    mock_close.assert_called_once()
