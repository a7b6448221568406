"""Tests for the status page client."""

from unittest.mock import MagicMock

import httpx
import pytest

from conftest import make_response
from wrappers.status_page import StatusFeedError, StatusPageClient


def _client(response=None, error=None) -> StatusPageClient:
    http = MagicMock()
    if error is not None:
        http.get.side_effect = error
    else:
        http.get.return_value = response
    return StatusPageClient("https://status.test/summary.json", http_client=http)


def test_get_summary(status_document):
    client = _client(make_response(status_document))
    assert client.get_summary()["status"]["indicator"] == "none"
    client.client.get.assert_called_once_with("https://status.test/summary.json")


def test_transport_error_raises_feed_error():
    client = _client(error=httpx.ReadTimeout("slow"))
    with pytest.raises(StatusFeedError):
        client.get_summary()


def test_non_object_payload():
    client = _client(make_response(["not", "a", "dict"]))
    with pytest.raises(StatusFeedError):
        client.get_summary()
