"""Configuration management for Task Master.

Two layers are combined here:

* :class:`TaskMasterSettings` holds process-level settings read from
  environment variables (``TASKMASTER_*``) and an optional ``.env`` file.
* :class:`ProjectConfig` is the per-project ``.taskmaster/config.json``
  document. Only the sections the worktree subsystem reads are modelled;
  everything else in the file is ignored.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

TASKMASTER_DIR = ".taskmaster"
CONFIG_FILENAME = "config.json"
LEGACY_CONFIG_FILE = ".taskmasterconfig"


class TaskMasterSettings(BaseSettings):
    """Process settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="TASKMASTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    LOG_LEVEL: str = Field(default="INFO", description="Root log level for the CLI")
    PROJECT_ROOT: str | None = Field(
        default=None, description="Explicit project root (skips upward discovery)"
    )
    GIT_TIMEOUT: float | None = Field(
        default=None,
        gt=0,
        description="Deadline in seconds for each spawned git command (unset = no deadline)",
    )
    WORKTREES_ENABLED: bool | None = Field(
        default=None,
        description="Override features.worktrees from the project config when set",
    )


@lru_cache
def get_settings() -> TaskMasterSettings:
    """Return memoized process settings."""
    return TaskMasterSettings()


class FeaturesConfig(BaseModel):
    """Feature switches from the ``features`` section."""

    model_config = ConfigDict(extra="ignore")

    worktrees: bool = Field(default=False, description="Enable git worktree commands")


class ProjectConfig(BaseModel):
    """Subset of ``.taskmaster/config.json`` used by this package."""

    model_config = ConfigDict(extra="ignore")

    features: FeaturesConfig = Field(default_factory=FeaturesConfig)

    @property
    def worktrees_enabled(self) -> bool:
        return self.features.worktrees


def config_path(project_root: Path) -> Path:
    """Return the path of the project configuration file."""
    return Path(project_root) / TASKMASTER_DIR / CONFIG_FILENAME


def load_project_config(project_root: Path) -> ProjectConfig:
    """
    Load the project configuration, falling back to defaults.

    The legacy ``.taskmasterconfig`` file is read when the current location
    does not exist. A missing or malformed file never raises; defaults
    (worktrees disabled) are returned instead.
    """
    root = Path(project_root)
    path = config_path(root)
    if not path.exists():
        legacy = root / LEGACY_CONFIG_FILE
        if not legacy.exists():
            return ProjectConfig()
        logger.warning(
            f"Found configuration in legacy location '{legacy}'. "
            f"Please migrate to {TASKMASTER_DIR}/{CONFIG_FILENAME}."
        )
        path = legacy

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return ProjectConfig.model_validate(payload)
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning(f"Could not read config {path}, using defaults: {exc}")
        return ProjectConfig()


def is_worktrees_enabled(project_root: Path) -> bool:
    """Return True when the worktrees feature gate is open for the project."""
    override = get_settings().WORKTREES_ENABLED
    if override is not None:
        return override
    return load_project_config(project_root).worktrees_enabled
