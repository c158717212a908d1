"""Tests for the httpx transport adapter."""

from unittest.mock import MagicMock

import httpx
import pytest

from restbridge.adapters import HttpxAdapter
from restbridge.config import ClientSettings
from restbridge.exceptions import (
    NetworkError,
    RestBridgeRequestError,
    TimeoutError,
    UnknownHandleError,
)
from restbridge.models import TransportAdapter
from restbridge.types import Request


@pytest.fixture
def settings():
    """Fixture for settings with fast retries."""
    return ClientSettings(_env_file=None, max_retries=2, backoff_factor=0, max_workers=4)


@pytest.fixture
def adapter(settings):
    with HttpxAdapter(settings) as adapter:
        yield adapter


def test_adapter_satisfies_protocol(adapter):
    assert isinstance(adapter, TransportAdapter)


def test_start_end(adapter, httpx_mock):
    httpx_mock.add_response(
        method="POST", url="https://api.example.com/things", status_code=201, json={"id": 1}
    )

    handle = adapter.start(
        Request(
            method="POST",
            url="https://api.example.com/things",
            headers={"Content-Type": "application/json"},
            body='{"a":1}',
        )
    )
    response = adapter.end(handle)

    assert response.status_code == 201
    assert response.json() == {"id": 1}
    sent = httpx_mock.get_request()
    assert sent.content == b'{"a":1}'
    assert sent.headers["Content-Type"] == "application/json"


def test_user_agent_from_settings(httpx_mock):
    httpx_mock.add_response(url="https://api.example.com/ua")
    settings = ClientSettings(_env_file=None, user_agent="my-app/2.0")

    with HttpxAdapter(settings) as adapter:
        adapter.end(adapter.start(Request(method="GET", url="https://api.example.com/ua")))

    assert httpx_mock.get_request().headers["User-Agent"] == "my-app/2.0"


def test_concurrent_requests_end_in_any_order(adapter, httpx_mock):
    for n in range(3):
        httpx_mock.add_response(url=f"https://api.example.com/things/{n}", json={"n": n})

    handles = [
        adapter.start(Request(method="GET", url=f"https://api.example.com/things/{n}"))
        for n in range(3)
    ]

    assert len(set(handles)) == 3
    assert [adapter.end(handle).json()["n"] for handle in reversed(handles)] == [2, 1, 0]


def test_error_statuses_are_returned(adapter, httpx_mock):
    httpx_mock.add_response(status_code=500, json={"error": "boom"})

    response = adapter.end(adapter.start(Request(method="GET", url="https://api.example.com/x")))

    assert response.status_code == 500
    assert len(httpx_mock.get_requests()) == 1


def test_unknown_handle(adapter):
    with pytest.raises(UnknownHandleError):
        adapter.end("nope")


def test_handle_can_only_be_ended_once(adapter, httpx_mock):
    httpx_mock.add_response()
    handle = adapter.start(Request(method="GET", url="https://api.example.com/x"))
    adapter.end(handle)

    with pytest.raises(UnknownHandleError):
        adapter.end(handle)


def test_timeout_is_retried_then_raised(adapter, httpx_mock):
    httpx_mock.add_exception(httpx.ReadTimeout("Unable to read within timeout"), is_reusable=True)

    handle = adapter.start(Request(method="GET", url="https://api.example.com/slow"))

    with pytest.raises(TimeoutError, match="Request timed out"):
        adapter.end(handle)
    assert len(httpx_mock.get_requests()) == 3


def test_network_error_then_success(adapter, httpx_mock):
    httpx_mock.add_exception(httpx.ConnectError("Connection refused"))
    httpx_mock.add_response(json={"ok": True})

    response = adapter.end(adapter.start(Request(method="GET", url="https://api.example.com/x")))

    assert response.json() == {"ok": True}
    assert len(httpx_mock.get_requests()) == 2


def test_network_error_mapping(adapter):
    adapter._http_client.send = MagicMock(
        side_effect=httpx.ConnectError(
            "DNS resolution failed", request=httpx.Request("GET", "/test")
        )
    )

    handle = adapter.start(Request(method="GET", url="https://api.example.com/test"))

    with pytest.raises(
        NetworkError,
        match="Network error for https://api.example.com/test: DNS resolution failed",
    ):
        adapter.end(handle)
    assert adapter._http_client.send.call_count == 3


def test_other_request_errors_are_not_retried(adapter):
    class OtherRequestError(httpx.RequestError):
        pass

    adapter._http_client.send = MagicMock(
        side_effect=OtherRequestError(
            "Some other request error", request=httpx.Request("GET", "/test")
        )
    )

    handle = adapter.start(Request(method="GET", url="https://api.example.com/test"))

    with pytest.raises(RestBridgeRequestError, match="Some other request error"):
        adapter.end(handle)
    assert adapter._http_client.send.call_count == 1


def test_close_closes_internal_http_client(settings):
    adapter = HttpxAdapter(settings)
    assert not adapter._http_client.is_closed

    adapter.close()

    assert adapter._http_client.is_closed


def test_close_does_not_close_external_http_client(settings):
    external_client = httpx.Client()

    HttpxAdapter(settings, http_client=external_client).close()

    assert not external_client.is_closed
    external_client.close()
