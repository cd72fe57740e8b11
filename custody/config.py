from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from custody.models import normalize_path


class VaultConfig(BaseModel):
    base_url: str = "http://127.0.0.1:8200"
    timeout_s: float = Field(default=10.0, gt=0)
    users_path: str = "transit/users"
    managers_path: str = "transit/managers"
    manager_key: str = "manager"
    key_type: str = "ed25519"
    """Key type requested when a missing key is created."""

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("vault.base_url must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("users_path", "managers_path")
    @classmethod
    def _normalize_paths(cls, value: str) -> str:
        return normalize_path(value)

    @field_validator("manager_key")
    @classmethod
    def _validate_manager_key(cls, value: str) -> str:
        if not value or "/" in value:
            raise ValueError("vault.manager_key must be a non-empty key name")
        return value


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"logging.level must be a standard level name, got {value!r}")
        return level


class CustodySettings(BaseSettings):
    vault: VaultConfig = Field(default_factory=VaultConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="CUSTODY_",
        env_nested_delimiter="__",
        extra="ignore",
    )


def _coerce_env_value(value: str) -> object:
    parsed = yaml.safe_load(value)
    return value if parsed is None else parsed


def _set_nested(mapping: dict[str, object], path: list[str], value: object) -> None:
    current = mapping
    for key in path[:-1]:
        existing = current.get(key)
        if not isinstance(existing, dict):
            existing = {}
            current[key] = existing
        current = existing
    current[path[-1]] = value


def _apply_env_overrides(data: dict[str, object]) -> dict[str, object]:
    """Overlay ``CUSTODY_<SECTION>__<FIELD>`` variables onto the file mapping.

    Prefix and delimiter come from ``CustodySettings.model_config``; variables
    naming an unknown top-level section are ignored.
    """
    prefix = CustodySettings.model_config["env_prefix"]
    delimiter = CustodySettings.model_config["env_nested_delimiter"]
    sections = set(CustodySettings.model_fields)
    merged = dict(data)
    for key, raw_value in os.environ.items():
        if not key.upper().startswith(prefix):
            continue
        path = key[len(prefix) :].lower().split(delimiter)
        if path[0] not in sections:
            continue
        _set_nested(merged, path, _coerce_env_value(raw_value))
    return merged


def load_config(path: str | Path = "config/custody.yaml") -> CustodySettings:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")

    loaded = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(loaded, dict):
        raise ValueError("config file must contain a top-level mapping")

    raw = loaded.get("custody", loaded)
    if not isinstance(raw, dict):
        raise ValueError("custody config section must be a mapping")

    merged = _apply_env_overrides(raw)
    return CustodySettings.model_validate(merged)


__all__ = [
    "CustodySettings",
    "LoggingConfig",
    "VaultConfig",
    "load_config",
]
