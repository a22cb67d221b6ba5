"""
Configuration Loader (``myrc_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the typed
``myrc_config.schema`` dataclasses.  Runtime callers go through
``myrc_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Values violating a schema constraint  -> ``ValueError`` from
  ``__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from myrc_config.schema import (
    DEFAULT_ALLOWED_CONTENT_TYPES,
    DEFAULT_MAX_ATTACHMENT_BYTES,
    ApiConfig,
    AppConfig,
    AttachmentConfig,
    BootstrapConfig,
    DatabaseConfig,
    DirectoryConfig,
    DirectoryGroupDef,
    DirectoryUserDef,
    LoginMethodsConfig,
    SecurityConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=data.get("url", "sqlite://"),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
    )


def parse_login_methods(data: dict[str, Any]) -> LoginMethodsConfig:
    app_account = data.get("app_account", {}) or {}
    return LoginMethodsConfig(
        app_account_enabled=bool(app_account.get("enabled", True)),
        allow_registration=bool(app_account.get("allow_registration", True)),
        ldap_enabled=bool((data.get("ldap") or {}).get("enabled", False)),
        oauth2_enabled=bool((data.get("oauth2") or {}).get("enabled", False)),
    )


def parse_directory(data: dict[str, Any]) -> DirectoryConfig:
    groups = [
        DirectoryGroupDef(
            identifier=g["identifier"],
            display_name=g.get("display_name", g["identifier"]),
            principal_type="GROUP",
            members=tuple(g.get("members", ())),
            email=g.get("email"),
        )
        for g in data.get("groups", ()) or ()
    ]
    groups.extend(
        DirectoryGroupDef(
            identifier=d["identifier"],
            display_name=d.get("display_name", d["identifier"]),
            principal_type="DISTRIBUTION_LIST",
            members=tuple(d.get("members", ())),
            email=d.get("email"),
        )
        for d in data.get("distribution_lists", ()) or ()
    )
    users = tuple(
        DirectoryUserDef(
            username=u["username"],
            display_name=u.get("display_name", u["username"]),
            email=u.get("email"),
        )
        for u in data.get("users", ()) or ()
    )
    return DirectoryConfig(groups=tuple(groups), users=users)


def parse_attachments(data: dict[str, Any]) -> AttachmentConfig:
    return AttachmentConfig(
        max_size_bytes=int(data.get("max_size_bytes", DEFAULT_MAX_ATTACHMENT_BYTES)),
        allowed_content_types=tuple(
            data.get("allowed_content_types", DEFAULT_ALLOWED_CONTENT_TYPES)
        ),
    )


def parse_security(data: dict[str, Any]) -> SecurityConfig:
    return SecurityConfig(
        max_failed_attempts=int(data.get("max_failed_attempts", 5)),
        lockout_minutes=int(data.get("lockout_minutes", 30)),
    )


def parse_api(data: dict[str, Any]) -> ApiConfig:
    return ApiConfig(
        cors_origins=tuple(data.get("cors_origins", ("http://localhost:4200",))),
        host=data.get("host", "127.0.0.1"),
        port=int(data.get("port", 8080)),
    )


def parse_bootstrap(data: dict[str, Any]) -> BootstrapConfig:
    return BootstrapConfig(
        admin_username=data.get("admin_username", "admin"),
        admin_password=data.get("admin_password"),
        admin_email=data.get("admin_email"),
        create_demo_rc=bool(data.get("create_demo_rc", True)),
        demo_fiscal_year=data.get("demo_fiscal_year", "FY 2025-2026"),
    )


def parse_config(data: dict[str, Any], source: str = "") -> AppConfig:
    """Parse a loaded YAML mapping; missing sections take their defaults."""
    return AppConfig(
        database=parse_database(data.get("database", {}) or {}),
        login_methods=parse_login_methods(data.get("login_methods", {}) or {}),
        directory=parse_directory(data.get("directory", {}) or {}),
        attachments=parse_attachments(data.get("attachments", {}) or {}),
        security=parse_security(data.get("security", {}) or {}),
        api=parse_api(data.get("api", {}) or {}),
        bootstrap=parse_bootstrap(data.get("bootstrap", {}) or {}),
        checksum=compute_checksum(data),
        source=source,
    )


def load_config(path: Path) -> AppConfig:
    return parse_config(load_yaml_file(path), source=str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
