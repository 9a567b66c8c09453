# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe settings schemas for erunner.

These models describe the optional YAML settings file passed with
`--config`. They are frozen pydantic models: once loaded, settings cannot
change for the rest of the command.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

The project registry (erunner_cache.json) is a different document with its
own models, see erunner.cache.models.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from erunner.utils.paths import DEFAULT_BINARY_DIR, DEFAULT_CACHE_FILE

CONFIG_VERSION = "1.0.0"

# Build commands written into a freshly initialized project.
DEFAULT_LANGUAGES: dict[str, str] = {
    "cpp": "g++ $(FILE) -o $(BIN_DIR)/$(FILENAME).$(EXE_EXT) --std=c++20",
    "c": "gcc $(FILE) -o $(BIN_DIR)/$(FILENAME).$(EXE_EXT)",
}

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class GlobalConfig(BaseModel):
    """
    Cross-cutting settings that apply to every command.

    This is the first section loaded and it controls observability: how
    chatty the logger is and whether it mirrors to a file.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}, got {value!r}")
        return upper


class RunnerConfig(BaseModel):
    """
    Knobs for the compile-and-run orchestrator.

    `languages` only seeds new projects: once a project is initialized its
    build commands live in the registry document and are edited there.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(default=CONFIG_VERSION, description="Schema version")
    cache_file: str = Field(
        default=DEFAULT_CACHE_FILE,
        min_length=1,
        description="Name of the project registry document",
    )
    binary_directory: str = Field(
        default=DEFAULT_BINARY_DIR,
        min_length=1,
        description="Where compiled binaries go, relative to the project root",
    )
    max_rebuild_retries: int = Field(
        default=1,
        ge=0,
        le=5,
        description="How many rebuild-and-retry cycles a missing binary may trigger",
    )
    stdin_chunk_size: int = Field(
        default=1024,
        ge=1,
        description="Bytes per write when piping test input into the binary",
    )
    languages: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_LANGUAGES),
        description="Extension (without dot) to build command template",
    )

    @field_validator("languages")
    @classmethod
    def _normalize_extensions(cls, value: dict[str, str]) -> dict[str, str]:
        normalized: dict[str, str] = {}
        for extension, template in value.items():
            key = extension.strip().lstrip(".")
            if not key:
                raise ValueError("language extension must not be empty")
            if not template.strip():
                raise ValueError(f"build command for '{key}' must not be empty")
            normalized[key] = template
        return normalized


class ErunnerConfig(BaseModel):
    """
    Top-level settings container.

    A settings file may contain only `global:`; the runner section then
    falls back to its defaults.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
