"""Unified settings for the service.

Values are read, in priority order, from init kwargs, ``JOBSERVICES_*``
environment variables, a ``.env`` file and finally the ``jobservices.yml``
config file. The YAML file is looked up in the Discovery Environment config
locations unless ``JOBSERVICES_CONFIG`` names one explicitly.

    from jobservices.settings import get_settings
    settings = get_settings()
    settings.db.async_url
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple, Type

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

CONFIG_ENV_VAR = "JOBSERVICES_CONFIG"
CONFIG_FILE_NAMES = ("jobservices.yml", "jobservices.yaml")

_ASYNC_DRIVER = "postgresql+asyncpg"
_POSTGRES_SCHEMES = {"postgres", "postgresql", "postgresql+psycopg2", "postgresql+psycopg"}


def config_search_paths() -> List[Path]:
    """Directories searched for the YAML config file, in order."""
    return [
        Path("/etc/iplant/de"),
        Path.home() / ".jobservices",
        Path.cwd(),
    ]


def find_config_file(search_paths: Optional[List[Path]] = None) -> Optional[Path]:
    """Return the config file to load, or None when there isn't one.

    An explicit ``JOBSERVICES_CONFIG`` path wins and must exist. Otherwise
    the first ``jobservices.yml`` found in the search paths is used.
    """
    explicit = os.getenv(CONFIG_ENV_VAR)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points at a missing file: {path}")
        return path

    for directory in search_paths if search_paths is not None else config_search_paths():
        for name in CONFIG_FILE_NAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


def to_async_url(uri: str) -> str:
    """Normalize a libpq-style PostgreSQL URI to a SQLAlchemy asyncpg URL.

    ``postgres://`` and ``postgresql://`` become ``postgresql+asyncpg://``
    and libpq's ``sslmode`` query parameter becomes asyncpg's ``ssl``.
    """
    try:
        url = make_url(uri)
    except ArgumentError as e:
        raise ValueError(f"could not parse database URI: {e}") from e
    if url.drivername not in _POSTGRES_SCHEMES and url.drivername != _ASYNC_DRIVER:
        raise ValueError(f"unsupported database scheme: {url.drivername}")

    url = url.set(drivername=_ASYNC_DRIVER)
    query = dict(url.query)
    sslmode = query.pop("sslmode", None)
    if sslmode is not None and "ssl" not in query:
        query["ssl"] = sslmode
    url = url.set(query=query)
    return url.render_as_string(hide_password=False)


class DatabaseSettings(BaseModel):
    """The ``db`` section of the config file."""

    uri: str = Field(description="PostgreSQL connection URI")
    pool_size: int = Field(default=5, ge=1, description="Connection pool size")
    max_overflow: int = Field(default=10, ge=0, description="Max pool overflow connections")

    @field_validator("uri")
    @classmethod
    def check_uri(cls, v: str) -> str:
        to_async_url(v)
        return v

    @property
    def async_url(self) -> str:
        return to_async_url(self.uri)


class Settings(BaseSettings):
    """Service settings. Only ``db.uri`` is required."""

    model_config = SettingsConfigDict(
        env_prefix="JOBSERVICES_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    db: DatabaseSettings

    # === Server ===
    listen_host: str = Field(default="0.0.0.0", description="Interface to bind")
    listen_port: int = Field(default=60000, ge=1, le=65535, description="The port to listen on")
    ssl_cert: Optional[Path] = Field(default=None, description="Path to the SSL .crt file")
    ssl_key: Optional[Path] = Field(default=None, description="Path to the SSL .key file")

    log_level: str = Field(default="INFO", description="Loguru level name")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=find_config_file())
        return (init_settings, env_settings, dotenv_settings, yaml_settings, file_secret_settings)

    @property
    def use_ssl(self) -> bool:
        return self.ssl_cert is not None and self.ssl_key is not None


@lru_cache()
def get_settings() -> Settings:
    """Get the cached settings singleton."""
    return Settings()
