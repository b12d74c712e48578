import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from procubid.api.responses import error_body, http_exception_handler
from procubid.api.v1 import auctions, bids, rankings, results, ws
from procubid.core.clock import Clock
from procubid.core.config import settings
from procubid.core.database import async_session_maker, engine
from procubid.core.redis import close_redis
from procubid.middleware.metrics import PrometheusMiddleware, metrics_endpoint
from procubid.middleware.rate_limit import RateLimitMiddleware
from procubid.services.email_service import EmailService, build_mailer, sender_display_name
from procubid.services.notifier import BroadcastGateway, ConnectionManager
from procubid.services.scheduler import AuctionScheduler
from procubid.store.base import AuctionStore
from procubid.store.sql import SqlAuctionStore

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_store() -> AsyncIterator[AuctionStore]:
    """Open a store on a fresh session for background work."""
    async with async_session_maker() as session:
        yield SqlAuctionStore(session)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting application...")

    clock = Clock(settings.TIMEZONE)
    manager = ConnectionManager()
    gateway = BroadcastGateway(manager)

    app.state.clock = clock
    app.state.connection_manager = manager
    app.state.gateway = gateway
    app.state.store_factory = open_store
    app.state.email_service = EmailService(
        build_mailer(settings), sender_display_name(settings.EMAIL_FROM)
    )

    scheduler = AuctionScheduler(
        open_store,
        gateway,
        clock,
        status_interval=settings.STATUS_SWEEP_INTERVAL_SECONDS,
        ranking_interval=settings.RANKING_BROADCAST_INTERVAL_SECONDS,
    )
    app.state.scheduler = scheduler

    logger.info(f"Starting background tasks (timezone {settings.TIMEZONE})")
    scheduler.start()

    yield

    logger.info("Stopping background tasks")
    await scheduler.stop()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="ProcuBid E-Auction",
    version="1.0.0",
    description="Reverse-auction procurement engine",
    lifespan=lifespan,
)

# Prometheus Metrics Middleware (must be first to capture all requests)
app.add_middleware(PrometheusMiddleware)

# Rate Limiting Middleware (must be before CORS)
app.add_middleware(
    RateLimitMiddleware,
    user_limit=settings.RATE_LIMIT_USER,
    ip_limit=settings.RATE_LIMIT_IP,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.add_exception_handler(StarletteHTTPException, http_exception_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=error_body(
            "VALIDATION_ERROR",
            "Invalid request",
            errors=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()],
        ),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    details = {"detail": str(exc)} if settings.DEBUG else {}
    return JSONResponse(
        status_code=500,
        content=error_body("INTERNAL_ERROR", "Internal server error", **details),
    )


app.include_router(auctions.router, prefix="/api/v1/auctions", tags=["auctions"])
app.include_router(bids.router, prefix="/api/v1/bids", tags=["bids"])
app.include_router(rankings.router, prefix="/api/v1/rankings", tags=["rankings"])
app.include_router(results.router, prefix="/api/v1/results", tags=["results"])

# WebSocket router (no prefix, endpoint is /ws/{auction})
app.include_router(ws.router, tags=["websocket"])


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint with the number of auctions holding WebSocket rooms."""
    manager: ConnectionManager = request.app.state.connection_manager
    return {
        "status": "healthy",
        "timezone": settings.TIMEZONE,
        "active_rooms": len(manager.get_active_auctions()),
    }


# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
