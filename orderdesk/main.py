"""
FastAPI Application Entry Point

Order Desk - order ingestion with offline fallback and new-order alerts.

Endpoints:
    - POST /api/orders: Customer order submission (never blocked by the remote store)
    - GET /api/orders: Tenant's orders, newest first
    - PATCH /api/orders/{order_id}/status: Status change (forward only)
    - DELETE /api/orders/{order_id}: Interactive delete
    - GET /api/orders/{order_id}/receipt: Printable receipt
    - GET /api/analytics: Revenue / best sellers
    - GET|PUT /api/preferences/auto-print: Auto-print toggle
    - POST|GET|DELETE /api/sessions: Operator order feeds
    - GET /health: System health check

Operator endpoints identify the tenant with the X-Tenant-ID header.

Author: Khalil Bannouri
Version: 3.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from orderdesk.core.config import get_settings, setup_logging
from orderdesk.database import async_session_maker, engine, init_db
from orderdesk.schemas import (
    AnalyticsRange,
    AnalyticsResponse,
    AutoPrintPreference,
    ErrorResponse,
    FeedSessionResponse,
    HealthResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    OrderRecord,
    StatusUpdate,
    StatusUpdateResponse,
)
from orderdesk.services.analytics import summarize
from orderdesk.services.feed import OrderFeed, SessionRegistry
from orderdesk.services.local_cache import LocalCache, LocalCacheError
from orderdesk.services.notifications import (
    NotificationDispatcher,
    close_notification_services,
    get_alert_service,
    get_printer_service,
)
from orderdesk.services.order_store import OrderNotFound, OrderStore, OrderStoreUnavailable
from orderdesk.services.preferences import Preferences
from orderdesk.services.receipts import render_receipt
from orderdesk.services.remote import REMOTE_ERRORS

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# DEPENDENCIES
# =============================================================================

@lru_cache()
def get_local_cache() -> LocalCache:
    return LocalCache()


@lru_cache()
def get_order_store() -> OrderStore:
    return OrderStore(async_session_maker, get_local_cache())


@lru_cache()
def get_preferences() -> Preferences:
    return Preferences(get_local_cache())


@lru_cache()
def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(get_printer_service(), get_alert_service(), get_preferences())


@lru_cache()
def get_session_registry() -> SessionRegistry:
    return SessionRegistry(
        lambda tenant_id: OrderFeed(get_order_store(), tenant_id, get_dispatcher())
    )


def tenant_header(x_tenant_id: str = Header(..., alias="X-Tenant-ID", min_length=1)) -> str:
    return x_tenant_id


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    # The remote store may be down; orders then go to the local cache
    try:
        await init_db()
        logger.info("✅ Database initialized")
    except REMOTE_ERRORS as e:
        logger.warning(f"⚠️ Database unavailable at startup, running on local cache: {e}")

    logger.info(f"✅ Printer Service: {get_printer_service().provider_name}")
    logger.info(f"✅ Alert Service: {get_alert_service().provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("✅ Application ready!")

    yield  # Application runs

    logger.info("Shutting down...")
    await get_session_registry().close_all()
    await close_notification_services()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant order ingestion with offline fallback, "
        "retention sweeps and new-order alerts."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Menu pages are served from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _feed_response(session_id: str, feed: OrderFeed) -> FeedSessionResponse:
    return FeedSessionResponse(
        session_id=session_id,
        tenant_id=feed.tenant_id,
        state=feed.state.value,
        loading=feed.loading,
        order_count=len(feed.orders),
        new_order_ids=feed.new_order_ids,
        last_polled_at=feed.last_polled_at,
        orders=feed.orders,
    )


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    store: OrderStore = Depends(get_order_store),
    cache: LocalCache = Depends(get_local_cache),
) -> HealthResponse:
    """Verify all system components are operational."""
    db_status = "healthy" if await store.health_check() else "unhealthy"
    cache_status = "healthy" if cache.health_check() else "unhealthy"
    printer_status = "healthy" if await get_printer_service().health_check() else "unhealthy"
    alert_status = "healthy" if await get_alert_service().health_check() else "unhealthy"

    statuses = [db_status, cache_status, printer_status, alert_status]
    if all(s == "healthy" for s in statuses):
        overall = "operational"
    elif cache_status == "healthy":
        overall = "degraded"
    else:
        overall = "down"

    return HealthResponse(
        status=overall,
        database=db_status,
        local_cache=cache_status,
        printer_service=printer_status,
        alert_service=alert_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderCreateResponse,
    status_code=201,
    responses={503: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Submit Order",
)
async def create_order(
    order_data: OrderCreate,
    store: OrderStore = Depends(get_order_store),
) -> OrderCreateResponse:
    """
    Accept an order from the customer menu.

    Succeeds even when the remote store is unreachable; the order is then
    kept in the local cache and shows up in the operator's list from there.
    """
    logger.info(f"Creating order for {order_data.customer_name} at {order_data.tenant_id}")

    try:
        record = await store.submit(order_data)
    except OrderStoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    return OrderCreateResponse(
        success=True,
        message="Order placed successfully!",
        order_id=record.id,
        status=record.status.value,
        total=record.total,
        stored_locally=record.source == "local",
    )


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    tenant_id: str = Depends(tenant_header),
    store: OrderStore = Depends(get_order_store),
) -> OrderListResponse:
    """Tenant's orders, newest first, after the retention sweep."""
    orders = await store.list_orders(tenant_id)
    return OrderListResponse(total=len(orders), orders=orders)


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderRecord,
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    tenant_id: str = Depends(tenant_header),
    store: OrderStore = Depends(get_order_store),
) -> OrderRecord:
    try:
        return await store.get(tenant_id, order_id)
    except OrderNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=StatusUpdateResponse,
    tags=["Orders"],
    summary="Update Order Status",
)
async def update_order_status(
    order_id: int,
    update: StatusUpdate,
    tenant_id: str = Depends(tenant_header),
    store: OrderStore = Depends(get_order_store),
) -> StatusUpdateResponse:
    """
    Move an order forward. The dashboard applies the change optimistically;
    `confirmed` tells whether the remote store acknowledged it.
    """
    confirmed = await store.update_status(tenant_id, order_id, update.status)
    return StatusUpdateResponse(
        success=True,
        order_id=order_id,
        status=update.status,
        confirmed=confirmed,
    )


@app.delete(
    "/api/orders/{order_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def delete_order(
    order_id: int,
    tenant_id: str = Depends(tenant_header),
    store: OrderStore = Depends(get_order_store),
) -> Response:
    try:
        await store.delete(tenant_id, order_id)
    except OrderNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OrderStoreUnavailable:
        raise HTTPException(status_code=503, detail="An error occurred while deleting the order")
    return Response(status_code=204)


@app.get(
    "/api/orders/{order_id}/receipt",
    response_class=HTMLResponse,
    tags=["Orders"],
)
async def order_receipt(
    order_id: int,
    tenant_id: str = Depends(tenant_header),
    store: OrderStore = Depends(get_order_store),
) -> HTMLResponse:
    """Printable receipt for manual printing."""
    try:
        order = await store.get(tenant_id, order_id)
    except OrderNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return HTMLResponse(render_receipt(order).html)


# =============================================================================
# ANALYTICS & PREFERENCES
# =============================================================================

@app.get(
    "/api/analytics",
    response_model=AnalyticsResponse,
    tags=["Analytics"],
)
async def analytics(
    range_: AnalyticsRange = Query(AnalyticsRange.TODAY, alias="range"),
    custom_date: Optional[date] = Query(None, alias="date"),
    tenant_id: str = Depends(tenant_header),
    store: OrderStore = Depends(get_order_store),
) -> AnalyticsResponse:
    if range_ == AnalyticsRange.CUSTOM and custom_date is None:
        raise HTTPException(status_code=422, detail="range=custom requires a date")

    orders = await store.list_orders(tenant_id)
    return summarize(orders, range_, custom_date)


@app.get("/api/preferences/auto-print", response_model=AutoPrintPreference, tags=["Preferences"])
async def get_auto_print(preferences: Preferences = Depends(get_preferences)) -> AutoPrintPreference:
    return AutoPrintPreference(enabled=preferences.auto_print)


@app.put("/api/preferences/auto-print", response_model=AutoPrintPreference, tags=["Preferences"])
async def set_auto_print(
    body: AutoPrintPreference,
    preferences: Preferences = Depends(get_preferences),
) -> AutoPrintPreference:
    try:
        return AutoPrintPreference(enabled=preferences.set_auto_print(body.enabled))
    except LocalCacheError as e:
        raise HTTPException(status_code=503, detail=str(e))


# =============================================================================
# ORDER FEED SESSIONS
# =============================================================================

@app.post(
    "/api/sessions",
    response_model=FeedSessionResponse,
    status_code=201,
    tags=["Sessions"],
    summary="Open Order Feed",
)
async def open_session(
    tenant_id: str = Depends(tenant_header),
    registry: SessionRegistry = Depends(get_session_registry),
) -> FeedSessionResponse:
    """Entering the orders view: load once, then refresh in the background."""
    session_id, feed = await registry.open(tenant_id)
    return _feed_response(session_id, feed)


@app.get(
    "/api/sessions/{session_id}",
    response_model=FeedSessionResponse,
    tags=["Sessions"],
)
async def get_session(
    session_id: str,
    tenant_id: str = Depends(tenant_header),
    registry: SessionRegistry = Depends(get_session_registry),
) -> FeedSessionResponse:
    try:
        feed = registry.get(session_id, tenant_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return _feed_response(session_id, feed)


@app.post(
    "/api/sessions/{session_id}/refresh",
    response_model=FeedSessionResponse,
    tags=["Sessions"],
)
async def refresh_session(
    session_id: str,
    tenant_id: str = Depends(tenant_header),
    registry: SessionRegistry = Depends(get_session_registry),
) -> FeedSessionResponse:
    try:
        feed = registry.get(session_id, tenant_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    await feed.refresh()
    return _feed_response(session_id, feed)


@app.delete("/api/sessions/{session_id}", status_code=204, tags=["Sessions"])
async def close_session(
    session_id: str,
    tenant_id: str = Depends(tenant_header),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    """Leaving the orders view stops the background refresh."""
    try:
        await registry.close(session_id, tenant_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return Response(status_code=204)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
