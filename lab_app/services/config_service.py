"""Resolve lab settings from YAML, environment and CLI overrides."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from lab_common.api import (
    ConfigurationError,
    collect_env_overrides,
    parse_float_env,
    parse_str_env,
)
from lab_provisioner.api import LabSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "labctl.yaml"

ENV_OVERRIDES = {
    "vagrant_path": ("LAB_VAGRANT_PATH", parse_str_env),
    "packer_path": ("LAB_PACKER_PATH", parse_str_env),
    "artifact_base_url": ("LAB_ARTIFACT_BASE_URL", parse_str_env),
    "min_free_disk_gb": ("LAB_MIN_FREE_DISK_GB", parse_float_env),
}

# Relative values for these keys are taken relative to the lab directory.
_LAB_RELATIVE_PATHS = ("vagrant_dir", "packer_dir", "boxes_dir", "state_dir")


class ConfigService:
    """Load ``LabSettings`` for a lab directory."""

    def __init__(self, environ: Optional[Dict[str, str]] = None) -> None:
        self._environ = environ

    def resolve_config_path(self, lab_dir: Path, config_path: Optional[Path]) -> Optional[Path]:
        if config_path is not None:
            if not config_path.exists():
                raise ConfigurationError(
                    f"Config file not found: {config_path}",
                    hint="Pass an existing file to --config.",
                )
            return config_path
        candidate = lab_dir / DEFAULT_CONFIG_NAME
        return candidate if candidate.exists() else None

    def read_yaml(self, path: Path) -> Dict[str, Any]:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}", cause=exc) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping at the top level")
        return data

    def load(
        self,
        lab_dir: Path,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> LabSettings:
        """Merge file < environment < explicit overrides, then validate."""
        lab_dir = lab_dir.expanduser().resolve()
        data: Dict[str, Any] = {}
        resolved = self.resolve_config_path(lab_dir, config_path)
        if resolved is not None:
            logger.debug("Loading lab config from %s", resolved)
            data.update(self.read_yaml(resolved))
        data.update(collect_env_overrides(ENV_OVERRIDES, self._environ))
        data.update({k: v for k, v in (overrides or {}).items() if v is not None})
        data["lab_dir"] = lab_dir
        for key in _LAB_RELATIVE_PATHS:
            value = data.get(key)
            if value is not None and not Path(value).expanduser().is_absolute():
                data[key] = lab_dir / value
        try:
            return LabSettings.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid lab configuration: {exc}",
                hint=f"Fix {resolved or 'the configuration'} and re-run.",
                cause=exc,
            ) from exc
