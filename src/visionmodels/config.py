"""Catalog configuration.

CatalogConfig is frozen and can be built directly or from VISIONMODELS_*
environment variables.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from visionmodels.catalog.registry import Capability, HandlerRegistry

ENV_MODELS_DIR = "VISIONMODELS_MODELS_DIR"
ENV_CAPABILITIES = "VISIONMODELS_CAPABILITIES"
ENV_BUNDLED_DIR = "VISIONMODELS_BUNDLED_DIR"
ENV_LOG_LEVEL = "VISIONMODELS_LOG_LEVEL"
ENV_JSON_LOGS = "VISIONMODELS_JSON_LOGS"

DEFAULT_MODELS_DIR = Path("models")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


class CatalogConfig(BaseModel):
    """Model catalog configuration (frozen)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    models_root: Path = Field(
        default=DEFAULT_MODELS_DIR,
        description="Directory holding artifacts and labels files",
    )
    capabilities: tuple[Capability, ...] | None = Field(
        default=None,
        description="Enabled accelerators; None detects them from the host",
    )
    bundled_dir: Path | None = Field(
        default=None,
        description="Shipped default artifacts to copy in on first run",
    )
    log_level: str = Field(default="INFO", description="Root log level name")
    json_logs: bool = Field(default=True, description="Emit JSON log lines")

    @field_validator("capabilities", mode="before")
    @classmethod
    def parse_capabilities(cls, v: object) -> object:
        """Accept a comma separated string such as "rknn,coreml"."""
        if isinstance(v, str):
            return tuple(part.strip().lower() for part in v.split(",") if part.strip())
        return v

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v!r}")
        return level

    @field_validator("json_logs", mode="before")
    @classmethod
    def parse_bool(cls, v: object) -> object:
        if isinstance(v, str):
            lowered = v.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ValueError(f"Expected a boolean, got {v!r}")
        return v

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CatalogConfig:
        """Build a config from VISIONMODELS_* variables.

        Unset variables keep their defaults.

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        if env.get(ENV_MODELS_DIR):
            values["models_root"] = env[ENV_MODELS_DIR]
        if ENV_CAPABILITIES in env:
            values["capabilities"] = env[ENV_CAPABILITIES]
        if env.get(ENV_BUNDLED_DIR):
            values["bundled_dir"] = env[ENV_BUNDLED_DIR]
        if env.get(ENV_LOG_LEVEL):
            values["log_level"] = env[ENV_LOG_LEVEL]
        if ENV_JSON_LOGS in env:
            values["json_logs"] = env[ENV_JSON_LOGS]
        return cls.model_validate(values)

    def build_registry(self) -> HandlerRegistry:
        """Handler registry for the configured (or detected) capabilities."""
        if self.capabilities is None:
            return HandlerRegistry.detect()
        return HandlerRegistry.from_capabilities(self.capabilities)
