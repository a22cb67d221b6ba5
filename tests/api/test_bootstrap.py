"""First-start seeding of the administrator and the Demo RC."""

from dataclasses import replace

import pytest

from myrc_api.bootstrap import bootstrap, seed_admin, seed_demo_rc
from myrc_api.dependencies import ServiceRegistry
from myrc_config.schema import AppConfig, BootstrapConfig
from myrc_kernel.models.responsibility_centre import DEMO_RC_NAME
from tests.conftest import TEST_PASSWORD


def _config(**bootstrap_settings) -> AppConfig:
    return replace(AppConfig(), bootstrap=BootstrapConfig(**bootstrap_settings))


class TestSeedAdmin:
    def test_skipped_without_password(self, session):
        assert seed_admin(session, _config()) is False
        assert ServiceRegistry(session, AppConfig()).users.find_user_by_username("admin") is None

    def test_creates_admin_once(self, session):
        config = _config(admin_password=TEST_PASSWORD, admin_email="root@example.com")
        assert seed_admin(session, config) is True
        assert seed_admin(session, config) is False

        admin = ServiceRegistry(session, config).users.find_user_by_username("admin")
        assert set(admin.roles) == {"ADMIN", "USER"}
        assert admin.email == "root@example.com"


class TestSeedDemoRc:
    def test_needs_admin(self, session):
        assert seed_demo_rc(session, _config()) is False

    def test_demo_rc_visible_to_everyone(self, session, make_user):
        config = _config(admin_password=TEST_PASSWORD, demo_fiscal_year="FY Demo")
        seed_admin(session, config)
        assert seed_demo_rc(session, config) is True
        assert seed_demo_rc(session, config) is False

        make_user("alice")
        services = ServiceRegistry(session, config)
        [demo] = services.rcs.list_for_user("alice")
        assert demo.name == DEMO_RC_NAME
        assert demo.access_level == "READ_ONLY"

        [year] = services.fiscal_years.list_fiscal_years(demo.id, "alice")
        assert year.name == "FY Demo"
        monies = services.monies.list_monies(demo.id, year.id, "alice")
        assert [m.code for m in monies] == ["AB"]
        assert services.categories.list_categories(demo.id, year.id, "alice")


class TestBootstrap:
    def test_commits_seed(self, session_factory):
        config = _config(admin_password=TEST_PASSWORD)
        bootstrap(session_factory, config)
        bootstrap(session_factory, config)

        with session_factory() as check:
            services = ServiceRegistry(check, config)
            assert services.users.find_user_by_username("admin") is not None
            names = [rc.name for rc in services.rcs.list_for_user("admin")]
            assert names == [DEMO_RC_NAME]

    def test_demo_rc_can_be_disabled(self, session_factory):
        config = _config(admin_password=TEST_PASSWORD, create_demo_rc=False)
        bootstrap(session_factory, config)
        with session_factory() as check:
            assert ServiceRegistry(check, config).rcs.list_for_user("admin") == []

    def test_failure_rolls_back(self, session_factory, monkeypatch):
        config = _config(admin_password=TEST_PASSWORD)

        def explode(session, config):
            raise RuntimeError("seed failed")

        monkeypatch.setattr("myrc_api.bootstrap.seed_demo_rc", explode)
        with pytest.raises(RuntimeError):
            bootstrap(session_factory, config)
        with session_factory() as check:
            assert ServiceRegistry(check, config).users.find_user_by_username("admin") is None
