from wealthsync.api.routes.bank import router as bank_router
from wealthsync.api.routes.details import router as details_router
from wealthsync.api.routes.health import router as health_router
from wealthsync.api.routes.manual import router as manual_router
from wealthsync.api.routes.networth import router as networth_router
from wealthsync.api.routes.stats import router as stats_router
from wealthsync.api.routes.stocks import router as stocks_router
from wealthsync.api.routes.wallets import router as wallets_router
from wealthsync.api.routes.webhooks import router as webhooks_router

__all__ = [
    "bank_router",
    "details_router",
    "health_router",
    "manual_router",
    "networth_router",
    "stats_router",
    "stocks_router",
    "wallets_router",
    "webhooks_router",
]
