from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cert_service.api.certificates import router as certificates_router
from cert_service.api.health import router as health_router
from cert_service.api.metrics_endpoint import router as metrics_router
from cert_service.api.verify import router as verify_router
from cert_service.core.config import SETTINGS
from cert_service.core.logging import setup_logging
from cert_service.db.engine import lifespan_db
from cert_service.db.redis import lifespan_redis
from cert_service.middleware.metrics import MetricsMiddleware
from cert_service.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Teardown runs in reverse order: Redis first, then the database.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="cert-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# The verification front-end is served from VERIFY_BASE_URL.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.verify_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(certificates_router)
app.include_router(verify_router)

logger.info(
    "cert-service started  env=%s log_level=%s port=%d docs=%s id_prefix=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
    SETTINGS.cert_id_prefix,
)
