"""
Tests for configuration loading: YAML parsing, schema constraints,
the MYRC_CONFIG override and the bridges into kernel inputs.
"""

from pathlib import Path

import pytest
import yaml

from myrc_config import CONFIG_ENV_VAR, get_active_config
from myrc_config.bridges import (
    build_account_policy,
    build_attachment_policy,
    build_directory_groups,
    build_directory_users,
)
from myrc_config.loader import compute_checksum, load_config, parse_config
from myrc_config.schema import (
    DEFAULT_ALLOWED_CONTENT_TYPES,
    AttachmentConfig,
    DatabaseConfig,
    DirectoryGroupDef,
    SecurityConfig,
)
from myrc_kernel.models.responsibility_centre import PrincipalType

CUSTOM = {
    "database": {"url": "sqlite:///custom.db", "pool_size": 5},
    "login_methods": {
        "app_account": {"enabled": True, "allow_registration": False},
        "ldap": {"enabled": True},
    },
    "security": {"max_failed_attempts": 3, "lockout_minutes": 10},
    "attachments": {"max_size_bytes": 1024, "allowed_content_types": ["text/plain"]},
    "directory": {
        "groups": [{"identifier": "research", "members": ["alice", "bob"]}],
        "distribution_lists": [
            {"identifier": "finance-dl", "display_name": "Finance", "email": "fin@example.com"}
        ],
        "users": [{"username": "ldap.only", "display_name": "LDAP Only"}],
    },
    "bootstrap": {"admin_password": "changeme", "create_demo_rc": False},
}


@pytest.fixture
def custom_file(tmp_path) -> Path:
    path = tmp_path / "myrc.yaml"
    path.write_text(yaml.safe_dump(CUSTOM))
    return path


class TestLoader:
    def test_packaged_defaults(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        config = get_active_config()
        assert config.source.endswith("defaults.yaml")
        assert config.login_methods.app_account_enabled
        assert config.login_methods.allow_registration
        assert config.bootstrap.admin_password is None
        assert config.attachments.allowed_content_types == DEFAULT_ALLOWED_CONTENT_TYPES
        assert len(config.checksum) == 64

    def test_environment_override(self, monkeypatch, custom_file):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(custom_file))
        config = get_active_config()
        assert config.source == str(custom_file)
        assert config.database.url == "sqlite:///custom.db"
        assert config.database.pool_size == 5
        assert config.login_methods.allow_registration is False
        assert config.login_methods.ldap_enabled is True
        assert config.bootstrap.create_demo_rc is False

    def test_trace_logged(self, custom_file, captured_logs):
        config = get_active_config(custom_file)
        [trace] = [r for r in captured_logs() if r["message"] == "MYRC_CONFIG_TRACE"]
        assert trace["checksum"] == config.checksum
        assert trace["directory_group_count"] == 2

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        config = load_config(path)
        assert config.database.url == "sqlite://"
        assert config.security.max_failed_attempts == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("database: [unclosed")
        with pytest.raises(yaml.YAMLError):
            load_config(path)

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_directory_entries(self):
        config = parse_config(CUSTOM)
        research, finance = config.directory.groups
        assert (research.principal_type, research.display_name) == ("GROUP", "research")
        assert research.members == ("alice", "bob")
        assert (finance.principal_type, finance.email) == ("DISTRIBUTION_LIST", "fin@example.com")
        assert config.directory.users[0].username == "ldap.only"


class TestSchemaConstraints:
    @pytest.mark.parametrize(
        "section",
        [
            {"database": {"url": ""}},
            {"database": {"pool_size": 0}},
            {"security": {"max_failed_attempts": 0}},
            {"attachments": {"max_size_bytes": -1}},
            {"attachments": {"allowed_content_types": []}},
            {"bootstrap": {"admin_username": ""}},
        ],
    )
    def test_invalid_values_rejected(self, section):
        with pytest.raises(ValueError):
            parse_config(section)

    def test_directory_group_needs_identifier(self):
        with pytest.raises(ValueError):
            DirectoryGroupDef(identifier="", display_name="Nobody")

    def test_unknown_principal_type(self):
        with pytest.raises(ValueError, match="principal_type"):
            DirectoryGroupDef(identifier="x", display_name="X", principal_type="USER")

    def test_sections_are_frozen(self):
        config = DatabaseConfig()
        with pytest.raises(AttributeError):
            config.url = "sqlite:///other.db"

    def test_defaults_valid(self):
        assert SecurityConfig().lockout_minutes == 30
        assert AttachmentConfig().max_size_bytes == 50 * 1024 * 1024


class TestBridges:
    def test_account_policy(self):
        policy = build_account_policy(parse_config(CUSTOM))
        assert policy.max_failed_attempts == 3
        assert policy.lockout_minutes == 10
        assert policy.allow_registration is False

    def test_attachment_policy(self):
        policy = build_attachment_policy(parse_config(CUSTOM))
        assert policy.max_size_bytes == 1024
        assert policy.allowed_content_types == frozenset({"text/plain"})

    def test_directory(self):
        config = parse_config(CUSTOM)
        groups = build_directory_groups(config)
        assert [g.principal_type for g in groups] == [
            PrincipalType.GROUP,
            PrincipalType.DISTRIBUTION_LIST,
        ]
        assert groups[0].members == frozenset({"alice", "bob"})
        [user] = build_directory_users(config)
        assert user.display_name == "LDAP Only"
