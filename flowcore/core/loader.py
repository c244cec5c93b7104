"""Load workflow definitions from YAML/JSON files or plain mappings."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from flowcore.core.exceptions import WorkflowConfigurationError, WorkflowLoadError
from flowcore.core.graph_schema import Workflow

logger = logging.getLogger(__name__)

JSON_SUFFIXES = {".json"}
YAML_SUFFIXES = {".yaml", ".yml"}


def parse_workflow(data: Workflow | Mapping[str, Any]) -> Workflow:
    """Build a Workflow from a mapping (editor JSON or parsed YAML).

    Raises:
        WorkflowConfigurationError: If the mapping fails schema validation
    """
    if isinstance(data, Workflow):
        return data
    if not isinstance(data, Mapping):
        raise WorkflowConfigurationError(
            f"Workflow definition must be a mapping, got {type(data).__name__}"
        )
    try:
        return Workflow.model_validate(dict(data))
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise WorkflowConfigurationError(f"Invalid workflow definition: {details}") from e


def load_workflow(path: str | Path) -> Workflow:
    """Read a workflow definition file.

    ``.json`` files are parsed as JSON, everything else as YAML (a superset
    of JSON).

    Raises:
        WorkflowLoadError: If the file cannot be read or parsed, or does not
            contain a mapping
        WorkflowConfigurationError: If the mapping fails schema validation
    """
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise WorkflowLoadError(f"Cannot read workflow file {path}: {e}") from e

    try:
        if path.suffix.lower() in JSON_SUFFIXES:
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise WorkflowLoadError(f"Invalid workflow file {path}: {e}") from e

    if not isinstance(data, dict):
        raise WorkflowLoadError(f"Workflow file {path} must contain a mapping")

    # Editor exports wrap the graph as {"workflow": {...}}
    if "workflow" in data and isinstance(data["workflow"], dict) and "nodes" not in data:
        data = data["workflow"]

    workflow = parse_workflow(data)
    logger.debug(f"Loaded workflow '{workflow.id}' from {path}")
    return workflow
