from dataclasses import replace

import pytest
import requests

from iszcloud.errors import NetworkError
from iszcloud.http_client import HttpClient

from .conftest import FakeSession


URL = "https://isz.example.com/service/apply-win-query/111/c1?cityNo=sz"


def test_get_returns_body(settings):
    client = HttpClient(settings)
    client.s = FakeSession({URL: b'{"success": true}'})

    assert client.get(URL) == b'{"success": true}'
    assert client.s.requested == [(URL, None)]


def test_timeout_is_passed_through(settings):
    client = HttpClient(replace(settings, timeout_sec=3.0))
    client.s = FakeSession({URL: b"{}"})

    client.get(URL)

    assert client.s.requested == [(URL, 3.0)]


@pytest.mark.parametrize("error", [
    requests.ConnectionError("refused"),
    requests.Timeout("slow"),
    requests.exceptions.MissingSchema("no scheme"),
    requests.exceptions.ChunkedEncodingError("cut off"),
])
def test_request_failures_become_network_error(settings, error):
    client = HttpClient(settings)
    client.s = FakeSession({URL: error})

    with pytest.raises(NetworkError, match=type(error).__name__):
        client.get(URL)


def test_context_manager_closes_session(settings):
    fake = FakeSession()

    with HttpClient(settings) as client:
        client.s = fake

    assert fake.closed
