"""
Configuration for the Lifecycle Engine.

Settings are read from a YAML or JSON file; top-level scalar settings can be
overridden with ``LIFECYCLE_<NAME>`` environment variables.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "LIFECYCLE_"


class PayrollSettings(BaseModel):
    """Payroll collaborator settings."""
    base_url: Optional[str] = Field(None, description="Payroll service base URL")
    timeout_seconds: float = Field(10.0, gt=0, description="Bound on the final payroll call")
    max_workers: int = Field(4, ge=1, description="Threads available for payroll calls, including timed-out ones")
    api_token: Optional[str] = None
    monthly_salary: float = Field(0.0, description="Salary reported by the mock payroll backend")


class AccessSettings(BaseModel):
    """Privilege thresholds applied by the request surface and the listings."""
    min_role_level: int = Field(700, description="Required for mutating and listing requests")
    unrestricted_role_level: int = Field(1000, description="Sees every department")
    hr_role_level: int = Field(700, description="HR-department callers at this level see every department")
    hr_department_name: str = "Human Resources"


class EngineConfig(BaseModel):
    """Complete engine configuration."""
    state_file: Optional[str] = Field(None, description="JSON file for lifecycles; memory only if unset")
    audit_dir: str = "audit"
    templates_file: Optional[str] = Field(None, description="YAML checklist/document templates")
    target_completion_days: int = Field(30, gt=0)
    max_save_retries: int = Field(3, ge=1)
    mock_mode: bool = True
    employees: List[Dict[str, Any]] = Field(
        default_factory=list, description="Seed records for the mock user directory"
    )
    payroll: PayrollSettings = Field(default_factory=PayrollSettings)
    access: AccessSettings = Field(default_factory=AccessSettings)


def _read_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(f) or {}
        return json.load(f)


def _env_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    overrides = {}
    for name, field in EngineConfig.model_fields.items():
        if field.annotation in (PayrollSettings, AccessSettings) or name == "employees":
            continue
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            overrides[name] = value
    return overrides


def load_config(path: Optional[Union[str, Path]] = None,
                environ: Optional[Dict[str, str]] = None) -> EngineConfig:
    """
    Load engine configuration.

    Args:
        path: YAML (.yaml/.yml) or JSON file; defaults are used if None
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        Validated EngineConfig

    Raises:
        FileNotFoundError: if ``path`` is given but does not exist
    """
    data: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        data = _read_file(path)
        logger.info(f"Loaded configuration from {path}")

    data.update(_env_overrides(dict(os.environ) if environ is None else environ))
    return EngineConfig.model_validate(data)
