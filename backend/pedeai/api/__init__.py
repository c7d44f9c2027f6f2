"""HTTP routers for the dashboard back office."""

from pedeai.api.admin_router import router as admin_router
from pedeai.api.analytics_router import router as analytics_router
from pedeai.api.auth_router import router as auth_router
from pedeai.api.orders_router import router as orders_router
from pedeai.api.products_router import customers_router, router as products_router
from pedeai.api.settings_router import router as settings_router
from pedeai.api.tables_router import router as tables_router
from pedeai.api.undo_router import router as undo_router

ROUTERS = [
    auth_router,
    orders_router,
    tables_router,
    undo_router,
    settings_router,
    products_router,
    customers_router,
    analytics_router,
    admin_router,
]

__all__ = ["ROUTERS"]
