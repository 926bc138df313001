from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from .core.config import get_settings
from .db import init_db
from .routers import access, checkins, payments, registrations
from .core.redis import ping_redis
from .core.nats import nats_connect, nats_close

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    # best-effort connect to infra; service still runs if these fail
    try:
        await nats_connect()
    except Exception as e:
        logger.warning(f"NATS unavailable at startup: {e}")
    if not await ping_redis():
        logger.warning("Redis unavailable at startup; rate limiting fails open")
    logger.info("event-checkin-svc started")
    yield
    await nats_close()

app = FastAPI(title="event-checkin-svc", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.dashboard_base_url, *(o.strip() for o in settings.cors_origins.split(",") if o.strip())],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(checkins.router)
app.include_router(registrations.router)
app.include_router(access.router)
app.include_router(payments.router)

@app.get("/health")
async def health():
    return {"status": "ok", "service": "event-checkin-svc"}

Instrumentator().instrument(app).expose(app)
