"""
Configuration for session-timeline.

Settings are read from environment variables (prefix SESSION_TIMELINE_),
optionally from a .env file named by LOAD_ENV_FILE.
"""

from __future__ import annotations

import codecs
import os
import pathlib
from typing import TypeVar

import lazy_object_proxy
import pydantic
import pydantic_settings

T = TypeVar('T', bound='TimelineSettings')

DEFAULT_READ_CHUNK_SIZE = 64 * 1024


class TimelineSettings(pydantic_settings.BaseSettings):
    """Parser configuration shared by the services and the CLI."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix='SESSION_TIMELINE_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='ignore',  # .env files are shared with other tools
    )

    # Stop pulling lines after this many failed lines (unset = unbounded)
    MAX_ERRORS: int | None = None

    # Bytes per read from the session file
    READ_CHUNK_SIZE: int = DEFAULT_READ_CHUNK_SIZE

    # Text encoding of session files (undecodable bytes become U+FFFD)
    ENCODING: str = 'utf-8'

    @pydantic.field_validator('MAX_ERRORS')
    @classmethod
    def validate_max_errors(cls, v: int | None) -> int | None:
        """Validate the error ceiling is a positive integer."""
        if v is not None and v < 1:
            raise ValueError('MAX_ERRORS must be a positive integer')
        return v

    @pydantic.field_validator('READ_CHUNK_SIZE')
    @classmethod
    def validate_read_chunk_size(cls, v: int) -> int:
        """Validate the read size is at least one byte."""
        if v < 1:
            raise ValueError('READ_CHUNK_SIZE must be at least 1')
        return v

    @pydantic.field_validator('ENCODING')
    @classmethod
    def validate_encoding(cls, v: str) -> str:
        """Validate the encoding is known to the codecs registry."""
        try:
            codecs.lookup(v)
        except LookupError as e:
            raise ValueError(f'Unknown encoding: {v}') from e
        return v


def get_settings(settings_class: type[T], env_file: str | None = None) -> T:
    """
    Factory for creating settings with dynamic .env file loading.

    LOAD_ENV_FILE environment variable specifies custom .env file path.
    When unset, loads from environment variables (and ./.env if present).

    Args:
        settings_class: Settings class to instantiate
        env_file: Optional path to .env file (overrides LOAD_ENV_FILE)

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If specified .env file doesn't exist
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')

    if not env_file_path:
        return settings_class()

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')

    return settings_class(_env_file=resolved_path)


def lazy_settings(settings_class: type[T]) -> T:
    """
    Lazy settings - defers instantiation until first access.

    Args:
        settings_class: Settings class to instantiate

    Returns:
        Proxy that instantiates settings on first access
    """
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))


# Module-level singleton (lazy-loaded)
settings = lazy_settings(TimelineSettings)
