"""
Server configuration.

Settings come from three layers, later ones winning:
1. Defaults on the pydantic models below
2. An optional YAML file (``--config`` or ``CHUK_MUSICGEN_CONFIG``)
3. ``CHUK_MUSICGEN_*`` environment variables
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHUK_MUSICGEN_"
CONFIG_ENV = f"{ENV_PREFIX}CONFIG"


class ProviderSettings(BaseModel):
    """Which backend generates content and how to reach it."""

    name: str = Field("rule_based", description="Provider name from the registry")
    fallback: str | None = Field(None, description="Secondary provider on transport failure")
    model: str = Field("gpt-4o-mini", description="Model for language-model providers")
    api_key: str | None = Field(None, description="API key (else the client's own env lookup)")
    base_url: str | None = Field(None, description="Alternative API endpoint")
    temperature: float = Field(0.8, ge=0.0, le=2.0)
    latency: float = Field(0.0, ge=0.0, description="Artificial delay for the rule-based provider")


class GenerationSettings(BaseModel):
    max_attempts: int = Field(3, ge=1, le=10, description="Retry budget per request")
    timeout: float = Field(30.0, gt=0, description="Bounded wait per provider call (seconds)")


class CacheSettings(BaseModel):
    capacity: int = Field(256, ge=1, description="Completed entries kept (LRU)")
    ttl: float | None = Field(None, gt=0, description="Entry lifetime in seconds; None = forever")


class PlaybackSettings(BaseModel):
    output_port: str | None = Field(None, description="mido output port; None records only")
    loop: bool = Field(False, description="Loop playback sessions by default")


class Settings(BaseModel):
    """All server settings."""

    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    playback: PlaybackSettings = Field(default_factory=PlaybackSettings)
    output_dir: Path = Field(Path("output"), description="Where MIDI exports are written")


# Environment variable suffix -> (section, field); section None = top level
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "PROVIDER": ("provider", "name"),
    "FALLBACK_PROVIDER": ("provider", "fallback"),
    "MODEL": ("provider", "model"),
    "API_KEY": ("provider", "api_key"),
    "BASE_URL": ("provider", "base_url"),
    "TEMPERATURE": ("provider", "temperature"),
    "MAX_ATTEMPTS": ("generation", "max_attempts"),
    "TIMEOUT": ("generation", "timeout"),
    "CACHE_CAPACITY": ("cache", "capacity"),
    "CACHE_TTL": ("cache", "ttl"),
    "OUTPUT_PORT": ("playback", "output_port"),
    "OUTPUT_DIR": (None, "output_dir"),
}


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML settings file; an empty file means no overrides."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def _apply_env(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    for suffix, (section, field) in ENV_OVERRIDES.items():
        value = environ.get(f"{ENV_PREFIX}{suffix}")
        if value is None:
            continue
        if section is None:
            data[field] = value
        else:
            data.setdefault(section, {})[field] = value
    return data


def load_settings(
    path: Path | str | None = None, environ: Mapping[str, str] | None = None
) -> Settings:
    """
    Build Settings from defaults, an optional YAML file and the environment.

    Args:
        path: YAML file; falls back to ``CHUK_MUSICGEN_CONFIG`` when unset
        environ: Environment mapping (defaults to ``os.environ``)

    Raises:
        FileNotFoundError: If an explicit config file does not exist
        pydantic.ValidationError: If a value is out of range
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get(CONFIG_ENV)

    data: dict[str, Any] = {}
    if path:
        data = _load_yaml(Path(path))
        logger.info(f"Loaded settings from {path}")

    return Settings.model_validate(_apply_env(data, environ))
