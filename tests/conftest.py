from __future__ import annotations

import io

import anyio
import pytest
from fastapi.testclient import TestClient

from objproxy.common.settings import ProxySettings
from objproxy.proxy.app import create_app
from objproxy.proxy.storage import ObjectFetchError, ObjectStore


class FakeBody(io.BytesIO):
    pass


class FakeObjectStore(ObjectStore):
    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.failure: str | None = None
        self.opened: list[FakeBody] = []

    def put(self, bucket: str, key: str, payload: bytes) -> None:
        self.objects[(bucket, key)] = payload

    def calls_for(self, key: str) -> int:
        return sum(1 for _, called_key in self.calls if called_key == key)

    async def get_object(self, bucket: str, key: str):
        self.calls.append((bucket, key))
        await anyio.sleep(0)
        if self.failure is not None:
            raise ObjectFetchError(bucket, key, self.failure)
        if (bucket, key) not in self.objects:
            raise ObjectFetchError(bucket, key, "The specified key does not exist.")
        body = FakeBody(self.objects[(bucket, key)])
        self.opened.append(body)
        return body


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings() -> ProxySettings:
    return ProxySettings(
        bucket="assets",
        access_key="access",
        secret_key="secret",
        health_file=".health",
        health_cache_interval_seconds=120,
        _env_file=None,
    )


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(settings: ProxySettings, store: FakeObjectStore, clock: FakeClock):
    app = create_app(settings, store=store, clock=clock)
    with TestClient(app) as test_client:
        yield test_client
