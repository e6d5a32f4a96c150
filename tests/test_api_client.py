"""
Unit tests for the order store client (PersistenceClient).

Requests never leave the process: every client is built on an
httpx.MockTransport with backoff disabled.
"""

import json

import httpx
import pytest

from core.api_client import PersistenceClient
from core.exceptions import (
    PersistenceRejectedError,
    PersistenceResponseError,
    PersistenceTimeoutError,
    PersistenceUnavailableError,
)


# Fixtures

@pytest.fixture
def make_client():
    """Build a client whose requests are answered by `handler`."""
    clients = []

    def _make(handler, max_retries=2):
        client = PersistenceClient(
            "http://store.test/",
            timeout=1.0,
            max_retries=max_retries,
            backoff_seconds=0,
            transport=httpx.MockTransport(handler),
        )
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()


class TestReads:

    def test_fetch_orders(self, make_client):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json=[{"id": 1, "orderNumber": "SW-1600"}])

        client = make_client(handler)
        assert client.fetch_orders() == [{"id": 1, "orderNumber": "SW-1600"}]
        assert seen == [("GET", "/api/orders")]

    def test_data_envelope_is_unwrapped(self, make_client):
        """Collections wrapped as {"data": [...]} come back as plain lists."""
        client = make_client(lambda request: httpx.Response(200, json={"data": [{"id": 3}, "junk"]}))
        assert client.fetch_order_items() == [{"id": 3}]

    def test_non_list_payload_is_empty(self, make_client):
        client = make_client(lambda request: httpx.Response(200, json={"status": "ok"}))
        assert client.list_materials() == []

    def test_base_url_trailing_slash_is_dropped(self, make_client):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        assert client.base_url == "http://store.test"


class TestWrites:

    def test_patch_sends_json_body(self, make_client):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": 42})

        client = make_client(handler)
        result = client.update_order_item(42, {"statusChangeDates": {"building": None}})

        assert result == {"id": 42}
        assert captured == {
            "method": "PATCH",
            "path": "/api/order-items/42",
            "body": {"statusChangeDates": {"building": None}},
        }

    def test_empty_response_body(self, make_client):
        client = make_client(lambda request: httpx.Response(204))
        assert client.update_order(1, {"archived": True}) == {}

    def test_update_material_path(self, make_client):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={})

        make_client(handler).update_material(5, {"quantity": 2})
        assert paths == ["/api/materials/5"]


class TestRetryPolicy:

    def test_server_error_is_retried(self, make_client):
        """A 503 followed by a success returns the success."""
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if len(calls) == 1:
                return httpx.Response(503, text="busy")
            return httpx.Response(200, json=[{"id": 1}])

        client = make_client(handler)
        assert client.fetch_orders() == [{"id": 1}]
        assert len(calls) == 2

    def test_client_error_is_not_retried(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(422, text="bad stage")

        client = make_client(handler)
        with pytest.raises(PersistenceRejectedError) as exc_info:
            client.update_order(1, {"statusChangeDates": {}})

        assert len(calls) == 1
        assert exc_info.value.status_code == 422
        assert exc_info.value.details["body"] == "bad stage"
        assert exc_info.value.path == "/api/orders/1"

    def test_retries_exhausted(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = make_client(handler, max_retries=2)
        with pytest.raises(PersistenceUnavailableError) as exc_info:
            client.fetch_orders()

        assert len(calls) == 3
        assert exc_info.value.attempts == 3

    def test_connection_error(self, make_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler, max_retries=1)
        with pytest.raises(PersistenceUnavailableError) as exc_info:
            client.fetch_order_items()
        assert "connection refused" in exc_info.value.details["reason"]

    def test_timeout(self, make_client):
        """Repeated timeouts surface as a timeout, not as unavailability."""
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler, max_retries=1)
        with pytest.raises(PersistenceTimeoutError) as exc_info:
            client.update_order_item(1, {"notes": "x"})
        assert exc_info.value.timeout_seconds == 1.0

    def test_negative_retries_means_single_attempt(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(502)

        client = make_client(handler, max_retries=-3)
        with pytest.raises(PersistenceUnavailableError):
            client.fetch_orders()
        assert len(calls) == 1

    def test_html_success_body_is_not_retried(self, make_client):
        """A proxy page answered with 200 is a store error, not a crash."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(
                200, text="<html>proxy error</html>", headers={"Content-Type": "text/html"}
            )

        client = make_client(handler)
        with pytest.raises(PersistenceResponseError) as exc_info:
            client.fetch_orders()

        assert len(calls) == 1
        assert exc_info.value.status_code == 200
        assert exc_info.value.details["body"] == "<html>proxy error</html>"
        assert isinstance(exc_info.value.__cause__, ValueError)
