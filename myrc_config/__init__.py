"""
myrc_config -- single public entrypoint for application configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- sits beside ``myrc_kernel``; the kernel MUST NEVER
    import from ``myrc_config``.  ``myrc_config.bridges`` translates
    configuration into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the configured path does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ValueError`` -- a value violates a schema constraint.

Audit relevance:
    Every call emits a ``MYRC_CONFIG_TRACE`` log entry with the source path
    and the SHA-256 checksum of the loaded document.
"""

from __future__ import annotations

import os
from pathlib import Path

from myrc_config.loader import load_config
from myrc_config.schema import AppConfig
from myrc_kernel.logging_config import get_logger

_logger = get_logger("config")

CONFIG_ENV_VAR = "MYRC_CONFIG"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> AppConfig:
    """The ONLY public configuration entrypoint.

    Preconditions:
        - ``path`` (or ``$MYRC_CONFIG``) names a readable YAML file, or both
          are unset and the packaged ``defaults.yaml`` is used.

    Postconditions:
        - Returns a frozen ``AppConfig`` whose ``checksum`` identifies the
          loaded document.
        - A ``MYRC_CONFIG_TRACE`` log entry has been emitted.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else _DEFAULT_CONFIG_PATH
    config = load_config(Path(path))

    _logger.info(
        "MYRC_CONFIG_TRACE",
        extra={
            "trace_type": "MYRC_CONFIG_TRACE",
            "config_source": config.source,
            "checksum": config.checksum,
            "app_account_enabled": config.login_methods.app_account_enabled,
            "allow_registration": config.login_methods.allow_registration,
            "directory_group_count": len(config.directory.groups),
        },
    )
    return config


__all__ = ["AppConfig", "CONFIG_ENV_VAR", "get_active_config"]
