"""Load workflow definitions and execution snapshots from disk.

Both JSON and YAML are accepted: YAML is a JSON superset, so a single
``yaml.safe_load`` reads either.  Keys may be camelCase (as saved by the
editor) or snake_case.
"""

from pathlib import Path
from typing import Union

import yaml
from pydantic import ValidationError

from canvasflow.exceptions import WorkflowLoadError
from canvasflow.types import Workflow, WorkflowExecution


def _read(path: Union[str, Path]) -> dict:
    p = Path(path)
    if not p.exists():
        raise WorkflowLoadError(f"File not found: {p}", path=str(p))
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise WorkflowLoadError(f"Could not parse {p}: {exc}", path=str(p)) from exc
    if not isinstance(raw, dict):
        raise WorkflowLoadError(f"{p} must contain a mapping at top level", path=str(p))
    return raw


def load_workflow(path: Union[str, Path]) -> Workflow:
    """Read a workflow definition file → Workflow."""
    raw = _read(path)
    try:
        return Workflow.model_validate(raw)
    except ValidationError as exc:
        raise WorkflowLoadError(f"Invalid workflow in {path}: {exc}", path=str(path)) from exc


def load_execution(path: Union[str, Path]) -> WorkflowExecution:
    """Read a saved execution snapshot (used to seed single-node runs)."""
    raw = _read(path)
    try:
        return WorkflowExecution.model_validate(raw)
    except ValidationError as exc:
        raise WorkflowLoadError(f"Invalid execution snapshot in {path}: {exc}", path=str(path)) from exc
