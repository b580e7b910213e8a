"""Runtime configuration loading and validation."""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Dict, Iterable, List, Literal

import yaml
from pydantic import Field, NonNegativeFloat, NonNegativeInt, PositiveInt
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("./config/nodeflow.yaml"),
    Path("./config/nodeflow.yml"),
    Path("./config/nodeflow.json"),
)


class NodeflowSettings(BaseSettings):
    """Validated settings for the node pipeline runtime."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="NODEFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Node families
    legacy_types: List[str] = Field(
        default_factory=lambda: ["text-input", "tts", "output", "download"],
        description="Node types served by the fixed-shape legacy family.",
    )
    known_dynamic_types: List[str] = Field(
        default_factory=lambda: ["asr-node", "media-input", "simple-test"],
        description="Node types always treated as dynamic during format detection.",
    )

    # Configuration resolution
    external_config: Dict[str, Any] = Field(
        default_factory=dict,
        description="System-level configuration layer (API URLs, keys, timeouts).",
    )
    strict_validation: bool = Field(
        default=False,
        description="Raise instead of collecting warnings when resolved config is invalid.",
    )
    cache_enabled: bool = Field(
        default=True,
        description="Enable resolver, status and routing caches.",
    )

    # Pipeline execution
    inter_step_delay_seconds: NonNegativeFloat = Field(
        default=0.2,
        description="Pause applied between two consecutive pipeline steps.",
    )
    continue_on_failure_types: List[str] = Field(
        default_factory=lambda: ["download", "output"],
        description="Node types whose failure is logged and skipped instead of aborting the run.",
    )
    default_handler_timeout_seconds: PositiveInt = Field(
        default=30,
        description="Timeout applied to dynamic handlers that do not declare one.",
    )
    default_handler_retry: NonNegativeInt = Field(
        default=0,
        description="Retry count applied to dynamic handlers that do not declare one.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for the nodeflow loggers.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    config_path: Path | None = Field(
        default=None,
        description="Resolved path to the on-disk config that seeded the settings.",
        exclude=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[NodeflowSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            cls._yaml_settings_source,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @staticmethod
    def _yaml_settings_source(settings_cls: type[NodeflowSettings] | None = None) -> Dict[str, Any]:
        for path in NodeflowSettings._resolve_candidate_paths():
            data = NodeflowSettings._load_file(path)
            if data is not None:
                data.setdefault("config_path", path)
                return data
        return {}

    @staticmethod
    def _resolve_candidate_paths() -> Iterable[Path]:
        explicit = os.getenv("NODEFLOW_CONFIG_FILE")
        if explicit:
            yield Path(explicit).expanduser()
        yield from DEFAULT_CONFIG_LOCATIONS

    @staticmethod
    def _load_file(path: Path) -> Dict[str, Any] | None:
        if not path.is_file():
            return None
        suffix = path.suffix.lower()
        try:
            with path.open("r", encoding="utf-8") as handle:
                if suffix in {".yaml", ".yml"}:
                    raw = yaml.safe_load(handle)
                elif suffix == ".json":
                    raw = json.load(handle)
                else:
                    return None
        except OSError as exc:
            raise RuntimeError(f"Failed to read nodeflow config file {path}") from exc
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ValueError(f"Invalid nodeflow config file {path}") from exc

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError(f"Nodeflow config file {path} must contain a mapping at top level.")
        return raw


@lru_cache()
def get_settings() -> NodeflowSettings:
    """Return memoized nodeflow settings."""

    return NodeflowSettings()


def configure_logging(settings: NodeflowSettings | None = None) -> None:
    """Apply the configured log level to the root logger."""

    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
