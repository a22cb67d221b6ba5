"""HTTP routes, one module per resource family."""

from myrc_api.routers.accounts import (
    auth_router,
    currencies_router,
    directory_router,
    users_router,
)
from myrc_api.routers.fiscal_years import category_router, fiscal_year_router, money_router
from myrc_api.routers.funding import router as funding_router
from myrc_api.routers.procurement import router as procurement_router
from myrc_api.routers.responsibility_centres import audit_router, permissions_router, rc_router
from myrc_api.routers.spending import router as spending_router
from myrc_api.routers.training import router as training_router
from myrc_api.routers.travel import router as travel_router

ROUTERS = (
    auth_router,
    users_router,
    directory_router,
    currencies_router,
    rc_router,
    permissions_router,
    audit_router,
    fiscal_year_router,
    money_router,
    category_router,
    funding_router,
    spending_router,
    procurement_router,
    training_router,
    travel_router,
)

__all__ = ["ROUTERS"]
