import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from goagri.config import settings
from goagri.middleware.exceptions import register_exception_handlers
from goagri.middleware.rate_limit import RateLimitMiddleware, rate_limit_options
from goagri.middleware.security import SecurityHeadersMiddleware
from goagri.routers import activity_logs, categories, deliveries, health, products
from goagri.utils.redis_pool import close_redis

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(f"GoAgri admin API starting ({settings.environment})")
    yield
    await close_redis()
    logger.info("GoAgri admin API stopped")


app = FastAPI(
    title="GoAgri Admin",
    description="Admin catalogue, delivery and approval workflow API",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (last added runs first) ───────────────────────
app.add_middleware(RateLimitMiddleware, **rate_limit_options())

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(SecurityHeadersMiddleware)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(categories.router, prefix="/api/categories", tags=["categories"])
app.include_router(products.router, prefix="/api/products", tags=["products"])
app.include_router(deliveries.router, prefix="/api/deliveries", tags=["deliveries"])
app.include_router(activity_logs.router, prefix="/api/activity-logs", tags=["activity-logs"])
