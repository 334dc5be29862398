"""
Configuration management for stack lifecycle commands.

A stack configuration names the stack, points at its template and holds
the parameter values and wait settings used to create it.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from cloudformation.models import StackTemplate, WaitConfig

DEFAULT_TIMEOUT = 3600
DEFAULT_POLL_INTERVAL = 10


@dataclass
class StackConfig:
    """Configuration for a single stack."""

    stack_name: str
    template_file: Optional[str] = None
    parameters: Dict[str, str] = field(default_factory=dict)

    # AWS settings
    region: Optional[str] = None
    profile: Optional[str] = None
    capabilities: List[str] = field(default_factory=list)
    tags: Dict[str, str] = field(default_factory=dict)

    # Wait settings, in seconds
    timeout: float = DEFAULT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL

    # Directory relative template paths are resolved against
    base_dir: Path = field(default_factory=Path.cwd)

    def load_template(self) -> StackTemplate:
        """Read the template file and pair it with the parameters."""
        if not self.template_file:
            raise ValueError(f"No template_file configured for stack {self.stack_name}")

        path = Path(self.template_file)
        if not path.is_absolute():
            path = self.base_dir / path

        return StackTemplate(body=path.read_text(), parameters=dict(self.parameters))

    def wait_config(self) -> WaitConfig:
        return WaitConfig(timeout=self.timeout, interval=self.poll_interval)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base_dir: Optional[Path] = None
    ) -> "StackConfig":
        """Create config from dictionary."""
        known = {f.name for f in fields(cls)} - {"base_dir"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        if not data.get("stack_name"):
            raise ValueError("Configuration must set stack_name")

        values = dict(data)
        # YAML turns numbers and booleans into non-strings
        values["parameters"] = {
            str(k): _stringify(v) for k, v in (data.get("parameters") or {}).items()
        }
        values["tags"] = {str(k): str(v) for k, v in (data.get("tags") or {}).items()}
        values["capabilities"] = list(data.get("capabilities") or [])
        for key in ("timeout", "poll_interval"):
            if key in data:
                values[key] = _number(key, data[key])

        config = cls(**values)
        if base_dir is not None:
            config.base_dir = base_dir
        return apply_environment(config)


def _number(key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number, got {value!r}") from None


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def apply_environment(config: StackConfig) -> StackConfig:
    """Fill in settings from environment variables."""
    if not config.region:
        config.region = os.environ.get("AWS_REGION") or os.environ.get(
            "AWS_DEFAULT_REGION"
        )

    timeout = os.environ.get("STACK_TIMEOUT")
    if timeout:
        try:
            config.timeout = float(timeout)
        except ValueError:
            raise ValueError(f"STACK_TIMEOUT must be a number, got {timeout!r}")

    return config


def load_stack_config(path: Union[str, Path]) -> StackConfig:
    """Load a stack configuration from a YAML file."""
    path = Path(path)
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")

    return StackConfig.from_dict(data, base_dir=path.parent.resolve())
