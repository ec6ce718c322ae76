"""Application configuration for the object proxy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


def env_field(default, env_name: str):
    return Field(default, validation_alias=env_name)


class ProxySettings(BaseSettings):
    """Runtime settings for the object proxy service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        populate_by_name=True,
        frozen=True,
    )

    port: int = env_field(8000, "PORT")
    bind_address: str = env_field("0.0.0.0", "BIND_ADDRESS")
    endpoint_url: str = env_field("http://minio:9000", "MINIO_ENDPOINT")
    region: str = env_field("us-east-1", "MINIO_REGION")
    bucket: str = env_field(..., "MINIO_BUCKET")
    access_key: str = env_field(..., "MINIO_ACCESS_KEY_ID")
    secret_key: SecretStr = env_field(..., "MINIO_SECRET_ACCESS_KEY")
    health_path: str = env_field("healthz", "HEALTH_PATH")
    health_file: str = env_field(".rest-minio-proxy", "HEALTH_FILE")
    health_cache_interval_seconds: int = env_field(120, "HEALTH_CACHE_INTERVAL")
    log_level: str = env_field("INFO", "LOG_LEVEL")
    log_format: str = env_field("json", "LOG_FORMAT")
    otel_exporter_endpoint: Optional[str] = env_field(None, "OTEL_EXPORTER_ENDPOINT")
    otel_exporter_headers: Optional[str] = env_field(None, "OTEL_EXPORTER_HEADERS")
    otel_sampler_ratio: float = env_field(0.1, "OTEL_SAMPLER_RATIO")


@dataclass(frozen=True)
class SettingsLoadResult:
    """Outcome of reading configuration: settings, or what was wrong."""

    settings: Optional[ProxySettings] = None
    missing: tuple[str, ...] = ()
    invalid: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.settings is not None


@dataclass(frozen=True)
class SettingSource:
    env_name: str
    value: str
    defaulted: bool


def _env_name(location: object) -> str:
    field = ProxySettings.model_fields.get(str(location))
    if field is not None and isinstance(field.validation_alias, str):
        return field.validation_alias
    return str(location)


def load_settings(**overrides) -> SettingsLoadResult:
    """Read settings from the environment without deciding what failure means.

    Keyword overrides take precedence over environment variables.
    """

    try:
        settings = ProxySettings(**overrides)
    except ValidationError as exc:
        missing: list[str] = []
        invalid: list[str] = []
        for error in exc.errors():
            name = _env_name(error["loc"][0]) if error["loc"] else "<settings>"
            target = missing if error["type"] == "missing" else invalid
            if name not in target:
                target.append(name)
        return SettingsLoadResult(missing=tuple(missing), invalid=tuple(invalid))
    return SettingsLoadResult(settings=settings)


def describe_settings(settings: ProxySettings) -> Iterator[SettingSource]:
    """Yield the effective value of every setting, masking secrets."""

    for name, field in ProxySettings.model_fields.items():
        value = getattr(settings, name)
        if isinstance(value, SecretStr):
            rendered = "**********"
        else:
            rendered = "" if value is None else str(value)
        yield SettingSource(
            env_name=_env_name(name),
            value=rendered,
            defaulted=name not in settings.model_fields_set,
        )
