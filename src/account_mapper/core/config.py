"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field


class ReceiverSettings(BaseModel):
    """Settings for the inbound SMTP listener and its staging directory."""

    host: str = Field(default="0.0.0.0", description="Listener bind address")
    port: int = Field(default=2525, description="Listener port")
    domain: str = Field(
        default="heroku.storj.io", description="Domain whose aliases are accepted"
    )
    tmpdir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Directory holding staged messages and error markers",
    )


class DirectorySettings(BaseModel):
    """Settings for the add-on vendor directory used to resolve aliases."""

    base_url: str = Field(
        default="https://api.heroku.com", description="Directory API base URL"
    )
    id: str | None = Field(default=None, description="Add-on vendor identifier")
    password: str | None = Field(default=None, description="Add-on vendor secret")
    timeout_seconds: float = Field(
        default=10, gt=0, description="Request timeout for directory lookups"
    )
    max_attempts: int = Field(
        default=3, ge=1, description="Attempts made on transient lookup failures"
    )


class MailerSettings(BaseModel):
    """Settings for the outbound SMTP relay used when forwarding."""

    host: str = Field(default="localhost", description="SMTP relay hostname")
    port: int = Field(default=25, description="SMTP relay port")
    username: str | None = Field(default=None, description="Relay username")
    password: str | None = Field(default=None, description="Relay password")
    use_tls: bool = Field(default=False, description="Connect with implicit TLS")
    start_tls: bool = Field(default=False, description="Upgrade with STARTTLS")
    timeout_seconds: float = Field(
        default=30, gt=0, description="Timeout for relay operations"
    )


class AutoAcceptSettings(BaseModel):
    """Settings for following registration confirmation links."""

    timeout_seconds: float = Field(
        default=15, gt=0, description="Timeout for the confirmation request"
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    receiver: ReceiverSettings = Field(default_factory=ReceiverSettings)
    directory: DirectorySettings = Field(default_factory=DirectorySettings)
    mailer: MailerSettings = Field(default_factory=MailerSettings)
    autoaccept: AutoAcceptSettings = Field(default_factory=AutoAcceptSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


ENV_PREFIX = "ACCOUNT_MAPPER_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, include_environment: bool
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
        _merge_into_tree(collected, path, normalized_value)

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    *,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "AutoAcceptSettings",
    "DirectorySettings",
    "LoggingSettings",
    "MailerSettings",
    "ReceiverSettings",
    "load_app_settings",
]
