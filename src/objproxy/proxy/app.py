"""HTTP front-end serving objects from an S3-compatible bucket."""

from __future__ import annotations

import time
from http import HTTPMethod
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import PlainTextResponse, StreamingResponse
import structlog
from opentelemetry import trace

from ..common.observability import instrument_fastapi_app
from ..common.settings import ProxySettings
from .health import HealthProber
from .storage import ObjectFetchError, ObjectStore, S3ObjectStore, iter_object


INTERNAL_ERROR_PREFIX = "An internal error occurred: "
TRACER = trace.get_tracer("objproxy.proxy")


class ProxyState:
    def __init__(self, settings: ProxySettings, store: ObjectStore, prober: HealthProber):
        self.settings = settings
        self.store = store
        self.prober = prober
        self.logger = structlog.get_logger("objproxy.proxy").bind(bucket=settings.bucket)


def get_state(request: Request) -> ProxyState:
    return request.app.state.proxy_state  # type: ignore[attr-defined]


def object_key_from_path(path: str) -> str:
    if path.startswith("/"):
        return path[1:]
    return path


def internal_error_response(error: BaseException) -> PlainTextResponse:
    return PlainTextResponse(INTERNAL_ERROR_PREFIX + str(error), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def method_not_allowed(detail: str) -> PlainTextResponse:
    return PlainTextResponse(
        detail,
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        headers={"Allow": HTTPMethod.GET.value},
    )


async def serve_health(state: ProxyState) -> PlainTextResponse:
    await state.prober.check()
    return PlainTextResponse("OK")


async def fetch_object(state: ProxyState, key: str) -> StreamingResponse:
    """Stream ``key`` from the configured bucket verbatim."""

    bucket = state.settings.bucket
    with TRACER.start_as_current_span(
        "proxy.get_object",
        attributes={"objproxy.bucket": bucket, "objproxy.key": key},
    ):
        body = await state.store.get_object(bucket, key)
    # No media type: the object's bytes are passed through untouched.
    return StreamingResponse(iter_object(body), status_code=status.HTTP_200_OK)


def create_app(
    settings: ProxySettings,
    store: Optional[ObjectStore] = None,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    if store is None:
        store = S3ObjectStore(settings)
    prober = HealthProber(
        store,
        bucket=settings.bucket,
        sentinel_key=settings.health_file,
        interval_seconds=settings.health_cache_interval_seconds,
        clock=clock,
    )
    state = ProxyState(settings, store, prober)
    # Every path is an object key, so the generated docs routes stay off.
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    instrument_fastapi_app(app)
    app.state.proxy_state = state

    @app.exception_handler(ObjectFetchError)
    async def handle_fetch_error(request: Request, exc: ObjectFetchError) -> PlainTextResponse:
        get_state(request).logger.error(
            "object_fetch_failed",
            method=request.method,
            path=request.scope["path"],
            key=exc.key,
            error=exc.reason,
        )
        return internal_error_response(exc)

    @app.middleware("http")
    async def log_request(request: Request, call_next):  # noqa: ANN001 - FastAPI middleware signature
        start = time.perf_counter()
        response = await call_next(request)
        logger = get_state(request).logger
        log = logger.error if response.status_code >= 500 else logger.info
        log(
            "http_request",
            method=request.method,
            path=request.scope["path"],
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response

    async def route(request: Request) -> Response:
        state = get_state(request)
        method = HTTPMethod(request.method) if request.method in HTTPMethod.__members__ else None
        key = object_key_from_path(request.scope["path"])
        if not key:
            return PlainTextResponse("Path must be provided", status_code=status.HTTP_400_BAD_REQUEST)

        if key == state.settings.health_path:
            if method is HTTPMethod.GET:
                return await serve_health(state)
            return method_not_allowed("method not allowed for health endpoint")

        state.logger.info("object_request", method=request.method, object_key=key)
        if method is HTTPMethod.GET:
            return await fetch_object(state, key)
        return method_not_allowed(f"method {request.method} not supported")

    # Registered without a method list so that every method, known or not, is dispatched here.
    app.add_route("/{object_path:path}", route)

    return app
