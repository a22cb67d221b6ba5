"""
First-start seeding: the administrator account and the Demo RC.

Idempotent; every step is skipped when its row already exists.  The Demo
RC is read-only to everyone through the permission service, so its fiscal
year is seeded directly rather than through ``FiscalYearService.create``.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from myrc_config.bridges import build_account_policy
from myrc_config.schema import AppConfig
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.models.responsibility_centre import DEMO_RC_NAME, ResponsibilityCentre
from myrc_kernel.services.fiscal_year_service import FiscalYearService
from myrc_kernel.services.responsibility_centre_service import ResponsibilityCentreService
from myrc_kernel.services.user_service import UserService

logger = get_logger("api.bootstrap")

SYSTEM_ACTOR = "system"


def seed_admin(session: Session, config: AppConfig) -> bool:
    settings = config.bootstrap
    users = UserService(session, build_account_policy(config))
    if not settings.admin_password or users.find_user_by_username(settings.admin_username):
        return False
    users.create_user(
        username=settings.admin_username,
        password=settings.admin_password,
        email=settings.admin_email,
        full_name="Administrator",
        roles={"ADMIN", "USER"},
        actor=SYSTEM_ACTOR,
    )
    logger.info("admin_account_created", extra={"username": settings.admin_username})
    return True


def seed_demo_rc(session: Session, config: AppConfig) -> bool:
    settings = config.bootstrap
    existing = session.execute(
        select(ResponsibilityCentre.id).where(ResponsibilityCentre.name == DEMO_RC_NAME)
    ).first()
    users = UserService(session, build_account_policy(config))
    if existing is not None or users.find_user_by_username(settings.admin_username) is None:
        return False

    rcs = ResponsibilityCentreService(session)
    view = rcs.create(
        settings.admin_username,
        DEMO_RC_NAME,
        "Demonstration responsibility centre, readable by every user",
    )
    rc = rcs.get_model(view.id)
    fy = FiscalYear(name=settings.demo_fiscal_year, active=True, created_by=SYSTEM_ACTOR)
    rc.fiscal_years.append(fy)
    session.flush()
    fiscal_years = FiscalYearService(session)
    fiscal_years.monies.ensure_default_money(fy, SYSTEM_ACTOR)
    fiscal_years.categories.seed_defaults(fy, SYSTEM_ACTOR)
    logger.info("demo_rc_created", extra={"rc_id": str(rc.id), "fiscal_year_id": str(fy.id)})
    return True


def bootstrap(session_factory: sessionmaker[Session], config: AppConfig) -> None:
    session = session_factory()
    try:
        seed_admin(session, config)
        if config.bootstrap.create_demo_rc:
            seed_demo_rc(session, config)
        session.commit()
    except Exception:
        session.rollback()
        logger.error("bootstrap_failed", exc_info=True)
        raise
    finally:
        session.close()
