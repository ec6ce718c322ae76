from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from objproxy.proxy.app import INTERNAL_ERROR_PREFIX, object_key_from_path


def test_get_streams_object_bytes_verbatim(client: TestClient, store) -> None:
    payload = bytes(range(256)) * 1024
    store.put("assets", "photo.jpg", payload)

    response = client.get("/photo.jpg")

    assert response.status_code == 200
    assert response.content == payload
    assert "content-type" not in response.headers
    assert store.calls == [("assets", "photo.jpg")]
    assert store.opened[0].closed


def test_get_nested_key_uses_full_path(client: TestClient, store) -> None:
    store.put("assets", "images/2024/cat.png", b"meow")

    response = client.get("/images/2024/cat.png")

    assert response.status_code == 200
    assert response.content == b"meow"
    assert store.calls == [("assets", "images/2024/cat.png")]


def test_get_empty_object_returns_empty_body(client: TestClient, store) -> None:
    store.put("assets", "empty.txt", b"")

    response = client.get("/empty.txt")

    assert response.status_code == 200
    assert response.content == b""


def test_root_path_is_rejected_without_backend_call(client: TestClient, store) -> None:
    store.failure = "backend down"

    response = client.get("/")

    assert response.status_code == 400
    assert response.text == "Path must be provided"
    assert store.calls == []


@pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "PATCH", "OPTIONS"])
def test_non_get_object_request_is_rejected(client: TestClient, store, method: str) -> None:
    store.put("assets", "anything", b"data")

    response = client.request(method, "/anything")

    assert response.status_code == 405
    assert response.text == f"method {method} not supported"
    assert store.calls == []


def test_head_object_request_is_rejected(client: TestClient, store) -> None:
    response = client.head("/anything")

    assert response.status_code == 405
    assert store.calls == []


def test_backend_error_becomes_internal_error(client: TestClient, store) -> None:
    response = client.get("/photo.jpg")

    assert response.status_code == 500
    assert response.text.startswith(INTERNAL_ERROR_PREFIX)
    assert "The specified key does not exist." in response.text


def test_docs_paths_are_object_keys(client: TestClient, store) -> None:
    store.put("assets", "docs", b"not swagger")
    store.put("assets", "openapi.json", b"{}")

    assert client.get("/docs").content == b"not swagger"
    assert client.get("/openapi.json").content == b"{}"


def test_percent_encoded_path_is_decoded_into_key(client: TestClient, store) -> None:
    store.put("assets", "my file?.txt", b"spaces")

    response = client.get("/my%20file%3F.txt")

    assert response.status_code == 200
    assert store.calls == [("assets", "my file?.txt")]


def test_object_key_from_path_strips_single_separator() -> None:
    assert object_key_from_path("/photo.jpg") == "photo.jpg"
    assert object_key_from_path("//photo.jpg") == "/photo.jpg"
    assert object_key_from_path("/") == ""


def test_unknown_method_is_rejected_as_plain_text(client: TestClient, store) -> None:
    store.put("assets", "anything", b"data")

    response = client.request("PROPFIND", "/anything")

    assert response.status_code == 405
    assert response.text == "method PROPFIND not supported"
    assert response.headers["content-type"].startswith("text/plain")
    assert store.calls == []


@pytest.mark.parametrize("method", ["GET", "POST", "PROPFIND"])
def test_root_path_is_bad_request_for_every_method(client: TestClient, store, method: str) -> None:
    response = client.request(method, "/")

    assert response.status_code == 400
    assert response.text == "Path must be provided"
    assert store.calls == []


def test_unknown_method_on_health_path_is_rejected(client: TestClient, store) -> None:
    response = client.request("PROPFIND", "/healthz")

    assert response.status_code == 405
    assert response.text == "method not allowed for health endpoint"
    assert store.calls == []
