"""
FastAPI Application Entry Point

Restaurant POS API - ordering, menu catalogue and sales reporting for the
customer kiosk and the employee screens.

Endpoints:
    - POST /api/orders: Submit a kiosk/cashier order
    - GET /api/orders/active: Orders not yet completed or cancelled
    - GET /api/orders/{id}: One order with its meals
    - /api/menu-items, /api/meal-types, /api/staff: Catalogue
    - /api/revenue/*: Revenue reports
    - /api/reports/x-report, /api/reports/z-report: Register reports
    - /api/product-usage, /api/sales-analytics/*: Item-level sales analytics
    - /api/inventory/*: Low stock, restock report, stock updates
    - GET /health: System health check
"""

import logging
from datetime import date, datetime
from typing import Any, List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
import redis.asyncio as aioredis

from pos_api.core.config import get_settings, setup_logging
from pos_api.database import get_db, init_db, engine
from pos_api.schemas import (
    OrderCreate,
    OrderCreateResponse,
    OrderCreateData,
    ActiveOrderListResponse,
    OrderEnvelope,
    OrderResponse,
    MealTypeResponse,
    MenuItemResponse,
    MenuItemCreate,
    MenuItemUpdate,
    MenuItemMutationResponse,
    StaffResponse,
    DailyRevenueResponse,
    RevenueSummaryResponse,
    OrderBreakdownResponse,
    SalesReportResponse,
    ZReportHistoryResponse,
    ProductUsageResponse,
    BestSellingResponse,
    CategorySalesResponse,
    InventoryListResponse,
    InventoryUpdate,
    InventoryMutationResponse,
    ErrorResponse,
    HealthResponse,
)
from pos_api.services import orders as order_service
from pos_api.services import menu as menu_service
from pos_api.services import reports as report_service
from pos_api.services import analytics as analytics_service
from pos_api.services import inventory as inventory_service
from pos_api.tasks import export_z_report_to_excel

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("Database initialized")

    yield  # Application runs

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Point-of-sale backend: kiosk and cashier ordering, menu and inventory "
        "management, item analytics and end-of-day sales reporting."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _server_error(message: str, exc: Exception) -> HTTPException:
    """500 with a generic message; raw exception text only in debug mode."""
    detail: Any = message
    if settings.debug:
        detail = {"error": message, "detail": str(exc)}
    return HTTPException(status_code=500, detail=detail)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, Any]:
    """API root with navigation links."""
    return {
        "message": settings.app_name,
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
        "api": "/api",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify the database and the Celery broker are reachable."""

    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    redis_status = "healthy"
    try:
        r = aioredis.from_url(settings.redis_url, socket_timeout=2)
        try:
            await r.ping()
        finally:
            await r.aclose()
    except Exception as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    overall = "operational" if db_status == redis_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderCreateResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Submit Order",
)
async def create_order(
    order_data: OrderCreate,
    db: AsyncSession = Depends(get_db),
) -> OrderCreateResponse:
    """
    Create an order, one meal per submitted item and one detail row per
    entree/side selection. Everything is written in a single transaction.
    """
    try:
        created = await order_service.create_order(db, order_data)
    except order_service.OrderValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Error creating order: {e}")
        raise _server_error("Failed to create order", e)

    return OrderCreateResponse(
        data=OrderCreateData(orderId=created.order_id, price=created.price)
    )


@app.get(
    "/api/orders/active",
    response_model=ActiveOrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="List Active Orders",
)
async def list_active_orders(
    db: AsyncSession = Depends(get_db),
) -> ActiveOrderListResponse:
    """Orders whose status is not terminal, newest first."""
    try:
        rows = await order_service.list_active_orders(db)
    except SQLAlchemyError as e:
        logger.exception(f"Error fetching active orders: {e}")
        raise _server_error("Failed to retrieve active orders", e)
    return ActiveOrderListResponse(data=rows)


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderEnvelope,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    db: AsyncSession = Depends(get_db),
) -> OrderEnvelope:
    """Get a specific order with its meals and their details."""
    order = await order_service.get_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order #{order_id} not found")
    return OrderEnvelope(data=OrderResponse.model_validate(order))


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@app.get(
    "/api/menu-items",
    response_model=List[MenuItemResponse],
    tags=["Menu"],
)
async def list_menu_items(
    is_available: bool = Query(False, description="Only items a customer can order now"),
    item_type: Optional[str] = Query(None, alias="type"),
    db: AsyncSession = Depends(get_db),
) -> List[dict]:
    """Menu items with stock; optionally only what is orderable right now."""
    return await menu_service.list_menu_items(db, available_only=is_available, item_type=item_type)


@app.get(
    "/api/menu-items/available",
    response_model=List[MenuItemResponse],
    tags=["Menu"],
)
async def list_available_menu_items(db: AsyncSession = Depends(get_db)):
    return await menu_service.list_available_menu_items(db)


@app.get(
    "/api/menu-items/inventory",
    response_model=List[MenuItemResponse],
    tags=["Menu"],
)
async def list_menu_items_with_inventory(db: AsyncSession = Depends(get_db)):
    """Every menu item with stock and reorder level (manager view)."""
    return await menu_service.list_menu_items_with_inventory(db)


@app.get(
    "/api/menu-items/type/{item_type}",
    response_model=List[MenuItemResponse],
    tags=["Menu"],
)
async def list_menu_items_by_type(item_type: str, db: AsyncSession = Depends(get_db)):
    return await menu_service.list_menu_items_by_type(db, item_type)


@app.get(
    "/api/menu-items/{menu_item_id}",
    response_model=MenuItemResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def get_menu_item(menu_item_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await menu_service.get_menu_item(db, menu_item_id)
    except menu_service.MenuItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post(
    "/api/menu-items",
    response_model=MenuItemMutationResponse,
    status_code=201,
    responses={**ERROR_RESPONSES, 409: {"model": ErrorResponse}},
    tags=["Menu"],
)
async def create_menu_item(
    data: MenuItemCreate,
    db: AsyncSession = Depends(get_db),
) -> MenuItemMutationResponse:
    """Create a menu item and its inventory entry."""
    try:
        item = await menu_service.create_menu_item(db, data)
    except menu_service.MenuItemValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except menu_service.MenuItemConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SQLAlchemyError as e:
        logger.exception(f"Error creating menu item: {e}")
        raise _server_error("Failed to create menu item", e)

    return MenuItemMutationResponse(
        message="Menu item and inventory item created successfully",
        data=MenuItemResponse.model_validate(
            menu_service.menu_item_to_dict(item) | {"stock": data.stock, "reorder": data.reorder}
        ),
    )


@app.put(
    "/api/menu-items/{menu_item_id}",
    response_model=MenuItemMutationResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def update_menu_item(
    menu_item_id: int,
    data: MenuItemUpdate,
    db: AsyncSession = Depends(get_db),
) -> MenuItemMutationResponse:
    try:
        item = await menu_service.update_menu_item(db, menu_item_id, data)
    except menu_service.MenuItemValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except menu_service.MenuItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return MenuItemMutationResponse(
        message="Menu item updated successfully",
        data=MenuItemResponse.model_validate(item),
    )


@app.put(
    "/api/menu-items/{menu_item_id}/deactivate",
    response_model=MenuItemMutationResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def deactivate_menu_item(
    menu_item_id: int,
    db: AsyncSession = Depends(get_db),
) -> MenuItemMutationResponse:
    try:
        item = await menu_service.deactivate_menu_item(db, menu_item_id)
    except menu_service.MenuItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return MenuItemMutationResponse(
        message="Menu item deactivated successfully",
        data=MenuItemResponse.model_validate(item),
    )


@app.delete(
    "/api/menu-items/{menu_item_id}",
    response_model=MenuItemMutationResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def delete_menu_item(
    menu_item_id: int,
    db: AsyncSession = Depends(get_db),
) -> MenuItemMutationResponse:
    try:
        item = await menu_service.delete_menu_item(db, menu_item_id)
    except menu_service.MenuItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return MenuItemMutationResponse(
        message="Menu item deleted successfully",
        data=MenuItemResponse.model_validate(menu_service.menu_item_to_dict(item)),
    )


@app.get(
    "/api/meal-types",
    response_model=List[MealTypeResponse],
    tags=["Menu"],
)
async def list_meal_types(db: AsyncSession = Depends(get_db)):
    return await menu_service.list_meal_types(db)


@app.get(
    "/api/meal-types/{meal_type_id}",
    response_model=MealTypeResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def get_meal_type(meal_type_id: int, db: AsyncSession = Depends(get_db)):
    meal_type = await menu_service.get_meal_type(db, meal_type_id)
    if meal_type is None:
        raise HTTPException(status_code=404, detail="Meal type not found")
    return meal_type


@app.get(
    "/api/staff",
    response_model=List[StaffResponse],
    tags=["Staff"],
)
async def list_staff(db: AsyncSession = Depends(get_db)):
    return await menu_service.list_staff(db)


# =============================================================================
# REVENUE ENDPOINTS
# =============================================================================

@app.get(
    "/api/revenue/daily",
    response_model=DailyRevenueResponse,
    responses=ERROR_RESPONSES,
    tags=["Reports"],
)
async def daily_revenue(
    report_date: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> DailyRevenueResponse:
    """Revenue per day for one date, a range, or the last 30 days."""
    try:
        rows = await report_service.daily_revenue(
            db, day=report_date, start_date=start_date, end_date=end_date
        )
    except SQLAlchemyError as e:
        logger.exception(f"Error fetching daily revenue report: {e}")
        raise _server_error("Failed to retrieve revenue report", e)
    return DailyRevenueResponse(data=rows)


@app.get(
    "/api/revenue/summary",
    response_model=RevenueSummaryResponse,
    responses=ERROR_RESPONSES,
    tags=["Reports"],
)
async def revenue_summary(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> RevenueSummaryResponse:
    try:
        summary = await report_service.revenue_summary(db, start_date, end_date)
    except SQLAlchemyError as e:
        logger.exception(f"Error fetching revenue summary: {e}")
        raise _server_error("Failed to retrieve revenue summary", e)
    return RevenueSummaryResponse(data=summary)


@app.get(
    "/api/revenue/orders/{report_date}",
    response_model=OrderBreakdownResponse,
    responses=ERROR_RESPONSES,
    tags=["Reports"],
)
async def orders_by_date(
    report_date: date,
    db: AsyncSession = Depends(get_db),
) -> OrderBreakdownResponse:
    try:
        rows = await report_service.orders_by_date(db, report_date)
    except SQLAlchemyError as e:
        logger.exception(f"Error fetching orders by date: {e}")
        raise _server_error("Failed to retrieve orders", e)
    return OrderBreakdownResponse(data=rows)


@app.get(
    "/api/reports/x-report",
    response_model=SalesReportResponse,
    responses=ERROR_RESPONSES,
    tags=["Reports"],
    summary="X Report (non-closing)",
)
async def x_report(
    report_date: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
) -> SalesReportResponse:
    try:
        report = await report_service.x_report(db, report_date)
    except SQLAlchemyError as e:
        logger.exception(f"Error generating X Report: {e}")
        raise _server_error("Failed to generate X Report", e)
    return SalesReportResponse(data=report)


@app.post(
    "/api/reports/z-report",
    response_model=SalesReportResponse,
    responses=ERROR_RESPONSES,
    tags=["Reports"],
    summary="Z Report (closes the day)",
)
async def z_report(
    report_date: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
) -> SalesReportResponse:
    """
    Close the business day and queue the report for Excel export.
    A day can only be closed once.
    """
    try:
        report = await report_service.z_report(db, report_date)
    except report_service.DayAlreadyClosedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError as e:
        logger.exception(f"Error generating Z Report: {e}")
        raise _server_error("Failed to generate Z Report", e)

    message = "Day closed successfully. Z Report generated."
    try:
        export_z_report_to_excel.delay(jsonable_encoder(report))
    except Exception as e:
        # The day is already closed; the export can be re-run from the history
        logger.error(f"Could not queue Z report export: {e}")
        message += " Excel export could not be queued."

    return SalesReportResponse(message=message, data=report)


@app.get(
    "/api/reports/z-report/history",
    response_model=ZReportHistoryResponse,
    tags=["Reports"],
)
async def z_report_history(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
) -> ZReportHistoryResponse:
    rows = await report_service.z_report_history(db, start_date, end_date, limit)
    return ZReportHistoryResponse(data=rows)


# =============================================================================
# ANALYTICS ENDPOINTS
# =============================================================================

@app.get(
    "/api/product-usage",
    response_model=ProductUsageResponse,
    responses=ERROR_RESPONSES,
    tags=["Analytics"],
)
async def product_usage(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
) -> ProductUsageResponse:
    """How often each menu item was picked between two dates (inclusive)."""
    try:
        start, end = analytics_service.parse_usage_range(start_date, end_date)
        usage = await analytics_service.product_usage(db, start, end)
    except analytics_service.AnalyticsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError as e:
        logger.exception(f"Error fetching product usage: {e}")
        raise _server_error("Failed to fetch product usage data", e)
    return ProductUsageResponse(data=usage)


@app.get(
    "/api/sales-analytics/best-selling",
    response_model=BestSellingResponse,
    responses=ERROR_RESPONSES,
    tags=["Analytics"],
)
async def best_selling_items(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    item_type: Optional[str] = Query(None),
    limit: int = Query(analytics_service.DEFAULT_BEST_SELLER_LIMIT, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> BestSellingResponse:
    """Items from completed orders ranked by quantity sold (default: last 30 days)."""
    try:
        items = await analytics_service.best_selling_items(
            db, start_date=start_date, end_date=end_date, item_type=item_type, limit=limit
        )
    except SQLAlchemyError as e:
        logger.exception(f"Error fetching best-selling items: {e}")
        raise _server_error("Failed to retrieve best-selling items", e)
    return BestSellingResponse(data=items)


@app.get(
    "/api/sales-analytics/by-category",
    response_model=CategorySalesResponse,
    responses=ERROR_RESPONSES,
    tags=["Analytics"],
)
async def sales_by_category(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> CategorySalesResponse:
    try:
        categories = await analytics_service.sales_by_category(db, start_date, end_date)
    except SQLAlchemyError as e:
        logger.exception(f"Error fetching sales by category: {e}")
        raise _server_error("Failed to retrieve sales by category", e)
    return CategorySalesResponse(data=categories)


# =============================================================================
# INVENTORY ENDPOINTS
# =============================================================================

@app.get(
    "/api/inventory/low-stock",
    response_model=InventoryListResponse,
    responses=ERROR_RESPONSES,
    tags=["Inventory"],
)
async def low_stock(db: AsyncSession = Depends(get_db)) -> InventoryListResponse:
    """Items at or below their reorder level."""
    try:
        rows = await inventory_service.low_stock(db)
    except SQLAlchemyError as e:
        logger.exception(f"Error fetching low stock: {e}")
        raise _server_error("Failed to retrieve low stock items", e)
    return InventoryListResponse(data=rows)


@app.get(
    "/api/inventory/restock-report",
    response_model=InventoryListResponse,
    responses=ERROR_RESPONSES,
    tags=["Inventory"],
)
async def restock_report(db: AsyncSession = Depends(get_db)) -> InventoryListResponse:
    """Items below the restock threshold."""
    try:
        rows = await inventory_service.restock_report(db)
    except SQLAlchemyError as e:
        logger.exception(f"Error generating restock report: {e}")
        raise _server_error("Failed to generate restock report", e)
    return InventoryListResponse(data=rows)


@app.put(
    "/api/inventory/{inventory_id}",
    response_model=InventoryMutationResponse,
    responses=ERROR_RESPONSES,
    tags=["Inventory"],
)
async def update_inventory_item(
    inventory_id: int,
    data: InventoryUpdate,
    db: AsyncSession = Depends(get_db),
) -> InventoryMutationResponse:
    try:
        row = await inventory_service.update_inventory_item(db, inventory_id, data)
    except inventory_service.InventoryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except inventory_service.InventoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SQLAlchemyError as e:
        logger.exception(f"Error updating inventory item: {e}")
        raise _server_error("Failed to update inventory item", e)

    return InventoryMutationResponse(message="Inventory item updated successfully", data=row)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors in the API's {success, error} envelope."""
    if isinstance(exc.detail, dict):
        content = {"success": False, **exc.detail}
    else:
        content = {"success": False, "error": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters are client errors (400)."""
    errors = exc.errors()
    messages = []
    for err in errors:
        msg = str(err.get("msg", "Invalid request")).removeprefix("Value error, ")
        location = ".".join(str(part) for part in err.get("loc", ())[1:])
        messages.append(msg if not location or msg.startswith("Order items") else f"{location}: {msg}")

    logger.info(f"Rejected request to {request.url.path}: {messages}")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": messages[0] if messages else "Invalid request",
            "detail": "; ".join(messages[1:]) or None,
        },
    )


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
