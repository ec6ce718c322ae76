"""Command-line entrypoint for running the object proxy."""

from __future__ import annotations

import socket
import sys
from typing import Optional

import structlog
import uvicorn

from ..common.observability import SERVICE_NAME, configure_logging, configure_observability, resolve_log_level
from ..common.settings import ProxySettings, describe_settings, load_settings
from .app import create_app


LOGGER = structlog.get_logger("objproxy.main")


def log_settings(settings: ProxySettings) -> None:
    for source in describe_settings(settings):
        if source.defaulted:
            LOGGER.info("setting_defaulted", name=source.env_name, value=source.value)
        else:
            LOGGER.info("setting_loaded", name=source.env_name, value=source.value)


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind the listening socket up front; uvicorn's own binding exits the process on failure."""

    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    return sock


def main(overrides: Optional[dict] = None) -> int:
    """Run the proxy until terminated and return the process exit code."""

    configure_logging(SERVICE_NAME)
    result = load_settings(**(overrides or {}))
    if not result.ok:
        for name in result.missing:
            LOGGER.error("setting_missing", name=name, detail=f"Unable to start as env {name} is not defined")
        for name in result.invalid:
            LOGGER.error("setting_invalid", name=name)
        return 1

    settings = result.settings
    assert settings is not None
    configure_observability(settings)
    log_settings(settings)

    app = create_app(settings)
    try:
        sock = bind_socket(settings.bind_address, settings.port)
    except OSError as exc:
        LOGGER.error("listener_bind_failed", host=settings.bind_address, port=settings.port, error=str(exc))
        return 1

    config = uvicorn.Config(
        app,
        log_config=None,
        log_level=resolve_log_level(settings.log_level),
        lifespan="off",
    )
    server = uvicorn.Server(config)
    LOGGER.info("startup_complete", host=settings.bind_address, port=settings.port)
    try:
        server.run(sockets=[sock])
    finally:
        sock.close()
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
