"""
Application configuration schema.

Defines the typed, frozen view of ``defaults.yaml`` (or the file named by
``MYRC_CONFIG``).  The loader parses YAML into these types; bridges turn
them into kernel inputs such as ``AccountPolicy`` and directory groups.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_MAX_ATTACHMENT_BYTES = 50 * 1024 * 1024

DEFAULT_ALLOWED_CONTENT_TYPES: tuple[str, ...] = (
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/tiff",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "text/csv",
)


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10

    def __post_init__(self):
        if not self.url:
            raise ValueError("database.url is required")
        if self.pool_size < 1:
            raise ValueError("database.pool_size must be at least 1")
        if self.max_overflow < 0:
            raise ValueError("database.max_overflow cannot be negative")


@dataclass(frozen=True)
class LoginMethodsConfig:
    """Which login methods the UI offers and whether self-registration is open."""

    app_account_enabled: bool = True
    allow_registration: bool = True
    ldap_enabled: bool = False
    oauth2_enabled: bool = False


@dataclass(frozen=True)
class DirectoryGroupDef:
    """A group or distribution list served by the directory."""

    identifier: str
    display_name: str
    principal_type: str = "GROUP"  # GROUP or DISTRIBUTION_LIST
    members: tuple[str, ...] = ()
    email: str | None = None

    def __post_init__(self):
        if not self.identifier:
            raise ValueError("directory group identifier is required")
        if self.principal_type not in ("GROUP", "DISTRIBUTION_LIST"):
            raise ValueError(
                f"directory entry {self.identifier!r}: principal_type must be "
                f"GROUP or DISTRIBUTION_LIST, got {self.principal_type!r}"
            )


@dataclass(frozen=True)
class DirectoryUserDef:
    """A directory-only user (e.g. an LDAP account not yet seen locally)."""

    username: str
    display_name: str
    email: str | None = None


@dataclass(frozen=True)
class DirectoryConfig:
    groups: tuple[DirectoryGroupDef, ...] = ()
    users: tuple[DirectoryUserDef, ...] = ()


@dataclass(frozen=True)
class AttachmentConfig:
    max_size_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES
    allowed_content_types: tuple[str, ...] = DEFAULT_ALLOWED_CONTENT_TYPES

    def __post_init__(self):
        if self.max_size_bytes <= 0:
            raise ValueError("attachments.max_size_bytes must be positive")
        if not self.allowed_content_types:
            raise ValueError("attachments.allowed_content_types cannot be empty")


@dataclass(frozen=True)
class SecurityConfig:
    max_failed_attempts: int = 5
    lockout_minutes: int = 30

    def __post_init__(self):
        if self.max_failed_attempts < 1:
            raise ValueError("security.max_failed_attempts must be at least 1")
        if self.lockout_minutes < 1:
            raise ValueError("security.lockout_minutes must be at least 1")


@dataclass(frozen=True)
class ApiConfig:
    cors_origins: tuple[str, ...] = ("http://localhost:4200",)
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass(frozen=True)
class BootstrapConfig:
    """Accounts and demo data created on first start of a fresh database."""

    admin_username: str = "admin"
    admin_password: str | None = None
    admin_email: str | None = None
    create_demo_rc: bool = True
    demo_fiscal_year: str = "FY 2025-2026"

    def __post_init__(self):
        if not self.admin_username:
            raise ValueError("bootstrap.admin_username must not be empty")


@dataclass(frozen=True)
class AppConfig:
    """The complete runtime configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    login_methods: LoginMethodsConfig = field(default_factory=LoginMethodsConfig)
    directory: DirectoryConfig = field(default_factory=DirectoryConfig)
    attachments: AttachmentConfig = field(default_factory=AttachmentConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    checksum: str = ""
    source: str = ""
