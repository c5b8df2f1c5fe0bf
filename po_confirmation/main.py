from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from redis.exceptions import RedisError
from sqlalchemy.exc import InterfaceError, OperationalError
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware
from po_confirmation.api import admin, auth, notifications, orders, users
from po_confirmation.core.config import settings
from po_confirmation.core.errors import AuthorizationDenied, CreditLimitExceeded, OrderNotFound, TransientWriteFailure
from po_confirmation.core.redis import init_redis, close_redis, redis_available
from po_confirmation.core.metrics import request_count, request_duration, db_connected, redis_connected, get_metrics_text
from po_confirmation.db.migrations import run_migrations
from po_confirmation.db.session import engine
import time
import logging

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration = time.time() - start_time
            request_count.labels(
                method=request.method,
                endpoint=request.url.path,
                status=status
            ).inc()
            request_duration.labels(
                method=request.method,
                endpoint=request.url.path
            ).observe(duration)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")

    try:
        applied = await run_migrations(engine)
        db_connected.set(1)
        logger.info(f"Database ready, {len(applied)} migration(s) applied")
    except (OperationalError, InterfaceError, OSError) as e:
        logger.error(f"Database connection failed: {e}")
        db_connected.set(0)
        raise

    logger.info("Initializing Redis connection...")
    try:
        await init_redis()
        redis_connected.set(1)
    except (RedisError, OSError) as e:
        # The submission lock degrades to in-process only.
        logger.error(f"Redis connection failed: {e}")
        redis_connected.set(0)

    yield

    logger.info("Application shutting down...")
    await close_redis()
    redis_connected.set(0)
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan
)

app.add_middleware(MetricsMiddleware)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(admin.router)
app.include_router(orders.router)
app.include_router(notifications.router)


@app.exception_handler(AuthorizationDenied)
async def authorization_denied_handler(request: Request, exc: AuthorizationDenied):
    return JSONResponse(status_code=403, content={"detail": exc.reason})


@app.exception_handler(OrderNotFound)
async def order_not_found_handler(request: Request, exc: OrderNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(CreditLimitExceeded)
async def credit_limit_handler(request: Request, exc: CreditLimitExceeded):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(TransientWriteFailure)
@app.exception_handler(OperationalError)
async def store_unavailable_handler(request: Request, exc: Exception):
    logger.error(f"Store unavailable during {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable"})


@app.get("/metrics", tags=["monitoring"])
async def metrics():
    return Response(
        content=get_metrics_text(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@app.get("/health", tags=["monitoring"])
async def health_check():
    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "dependencies": {
            "redis": "connected" if redis_available() else "disconnected",
            "database": "connected"
        }
    }


@app.get("/", tags=["root"])
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }
