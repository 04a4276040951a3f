"""
ClawboxConfig: YAML file + environment overrides.
The engine itself needs nothing but a backend choice; the rest bounds what the
tool layer is allowed to ask of it.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


@dataclass
class ClawboxConfig:
    # Backend: "docker" | "apple-container"
    engine: str = "docker"

    # Execution bounds
    default_timeout_ms: int | None = None
    max_timeout_ms: int = 300_000
    max_output_bytes: int | None = 10 * 1024 * 1024  # per stream; None = unbounded

    # Logging
    log_level: str = "INFO"
    log_dir: Path | None = None
    log_max_bytes: int = 10 * 1024 * 1024  # 10MB
    log_backup_count: int = 3

    @classmethod
    def load(cls, yaml_path: str | Path | None = None) -> "ClawboxConfig":
        """Load config from YAML file + environment variable overrides."""
        cfg = cls()

        yaml_path = Path(yaml_path) if yaml_path is not None else DEFAULT_CONFIG_PATH
        if yaml_path.exists():
            with yaml_path.open() as f:
                data: dict[str, Any] = yaml.safe_load(f) or {}
            cfg._apply_yaml(data)

        # ENV overrides (always win)
        cfg._apply_env()
        return cfg

    def _apply_yaml(self, data: dict[str, Any]) -> None:
        known = {f.name for f in fields(self)}
        for key, val in data.items():
            if key in known:
                setattr(self, key, val)
        if self.log_dir is not None:
            self.log_dir = Path(self.log_dir).expanduser()

    def _apply_env(self) -> None:
        env_map = {
            "CLAWBOX_ENGINE": ("engine", str),
            "CLAWBOX_LOG_LEVEL": ("log_level", str),
            "CLAWBOX_LOG_DIR": ("log_dir", lambda v: Path(v).expanduser()),
            "CLAWBOX_MAX_OUTPUT_BYTES": ("max_output_bytes", int),
            "CLAWBOX_DEFAULT_TIMEOUT_MS": ("default_timeout_ms", int),
        }
        for env_key, (attr, conv) in env_map.items():
            val = os.environ.get(env_key, "")
            if not val:
                continue
            try:
                setattr(self, attr, conv(val))
            except ValueError as exc:
                raise ValueError(f"Invalid value for {env_key}: {val!r}") from exc


_config: ClawboxConfig | None = None


def get_config() -> ClawboxConfig:
    global _config
    if _config is None:
        _config = ClawboxConfig.load()
    return _config


def reload_config(yaml_path: str | Path | None = None) -> ClawboxConfig:
    global _config
    _config = ClawboxConfig.load(yaml_path)

    from clawbox.utils.logger import apply_config
    apply_config(_config)
    return _config
