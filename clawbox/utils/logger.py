"""
Logger factory driven by ClawboxConfig: level, optional rotating log file.
Every logger lives under the ``clawbox.`` namespace. reload_config() re-applies
settings to loggers created earlier.
"""
from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clawbox.config import ClawboxConfig

ROOT_NAMESPACE = "clawbox"
_FORMATTER = logging.Formatter(
    fmt="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
# Loggers built here, so a config reload can reach them.
_managed: dict[str, logging.Logger] = {}


def _qualify(name: str) -> str:
    if name == ROOT_NAMESPACE or name.startswith(ROOT_NAMESPACE + "."):
        return name
    return f"{ROOT_NAMESPACE}.{name}"


def _configure(logger: logging.Logger, config: "ClawboxConfig") -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(getattr(logging, str(config.log_level).upper(), logging.INFO))

    ch = logging.StreamHandler(sys.stderr)
    ch.setFormatter(_FORMATTER)
    logger.addHandler(ch)

    if config.log_dir is not None:
        log_dir = Path(config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            filename=log_dir / f"{logger.name.replace('.', '_')}.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        fh.setFormatter(_FORMATTER)
        logger.addHandler(fh)

    logger.propagate = False


def get_logger(name: str, config: "ClawboxConfig | None" = None) -> logging.Logger:
    """Namespaced logger; configured from ``config`` (default: get_config()) on first use."""
    qualified = _qualify(name)
    logger = _managed.get(qualified)
    if logger is not None and config is None:
        return logger  # already configured

    if config is None:
        from clawbox.config import get_config
        config = get_config()

    logger = logging.getLogger(qualified)
    _configure(logger, config)
    _managed[qualified] = logger
    return logger


def apply_config(config: "ClawboxConfig") -> None:
    """Re-level and re-route every logger made by get_logger()."""
    for logger in _managed.values():
        _configure(logger, config)
