"""Engine configuration.

Settings can be supplied in code or loaded from a YAML file::

    # flowcore.yaml
    node_timeout: 30          # Per-node deadline in seconds (omit for none)
    simulated_latency: 0.5    # Base latency of simulated agent responses
    random_seed: 42           # Reproducible simulated responses
    log_to_logger: true       # Mirror run log lines to the flowcore logger
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from flowcore.core.exceptions import WorkflowConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "flowcore.yaml"


class EngineConfig(BaseModel):
    """Runtime settings for WorkflowEngine"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    node_timeout: float | None = Field(default=None, gt=0)
    simulated_latency: float = Field(default=0.0, ge=0)
    random_seed: int | None = None
    log_to_logger: bool = True


def load_engine_config(path: str | Path | None = None) -> EngineConfig:
    """Load EngineConfig from a YAML file.

    A missing file (or no path at all) yields the defaults; an empty file is
    treated the same way.

    Raises:
        WorkflowConfigurationError: If the file is not valid YAML, is not a
            mapping, or contains unknown or invalid settings
    """
    config_path = Path(path) if path else Path(DEFAULT_CONFIG_FILE)
    if not config_path.exists():
        if path:
            logger.warning(f"Config file {config_path} not found, using defaults")
        return EngineConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise WorkflowConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise WorkflowConfigurationError(f"{config_path} must contain a mapping of settings")

    try:
        return EngineConfig(**data)
    except ValidationError as e:
        raise WorkflowConfigurationError(f"Invalid engine config in {config_path}: {e}") from e
