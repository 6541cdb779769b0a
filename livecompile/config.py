"""Compiler settings loaded from YAML and ``LIVECOMPILE_*`` environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import field_validator

from .models import CompileOptions

ENV_PREFIX = "LIVECOMPILE_"


class CompilerSettings(BaseModel):
    """Primitive configuration the runtime compiler is built from."""

    backend: str = Field(
        default="python",
        description="Backend name, entry point name, or 'module:attribute' path",
    )
    target_version: str | None = Field(
        default=None, description="Oldest Python grammar generated code must parse under"
    )
    lint_recovery: bool = Field(
        default=False,
        description="Retry once with lint options when a strict compile fails on a lint warning",
    )
    warnings_as_errors: bool = Field(
        default=True,
        description="Fail a unit on any compiler warning outside the lint categories",
    )
    resource_path: list[Path] = Field(
        default_factory=list,
        description="Directories and zip archives searched when a file is not in memory",
    )
    compile_directory: Path | None = Field(
        default=None, description="Where to save a copy of every artifact (disabled if unset)"
    )
    verbose: bool = Field(
        default=False, description="Log warnings and notes from the backend"
    )

    @field_validator("target_version")
    @classmethod
    def _validate_target_version(cls, value: str | None) -> str | None:
        if value is not None:
            CompileOptions(target_version=value)
        return value


def _environment_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if value := environ.get(f"{ENV_PREFIX}BACKEND"):
        overrides["backend"] = value
    if value := environ.get(f"{ENV_PREFIX}TARGET_VERSION"):
        overrides["target_version"] = value
    if value := environ.get(f"{ENV_PREFIX}LINT_RECOVERY"):
        overrides["lint_recovery"] = value
    if value := environ.get(f"{ENV_PREFIX}WARNINGS_AS_ERRORS"):
        overrides["warnings_as_errors"] = value
    if value := environ.get(f"{ENV_PREFIX}RESOURCE_PATH"):
        overrides["resource_path"] = [p for p in value.split(os.pathsep) if p]
    if value := environ.get(f"{ENV_PREFIX}COMPILE_DIR"):
        overrides["compile_directory"] = value
    if value := environ.get(f"{ENV_PREFIX}VERBOSE"):
        overrides["verbose"] = value
    return overrides


def load_settings(
    path: Path | None = None, environ: Mapping[str, str] | None = None
) -> CompilerSettings:
    """Load settings from an optional YAML file, then apply environment overrides.

    Args:
        path: YAML file; keys may sit at top level or under a ``compiler:`` section.
        environ: Environment mapping (defaults to ``os.environ``).

    Raises:
        FileNotFoundError: ``path`` was given but doesn't exist.
        ValueError: The file isn't a mapping, or a value fails validation.
        yaml.YAMLError: The file contains invalid YAML.
    """
    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Settings file not found: {path}")
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Settings file {path} must contain a mapping")
        data = loaded.get("compiler", loaded)

    environ = os.environ if environ is None else environ
    return CompilerSettings.model_validate({**data, **_environment_overrides(environ)})
