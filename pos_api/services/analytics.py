"""
Sales Analytics Service

Item-level views built from meal details, for the manager's trends and
inventory pages:

- Product usage: how often each item was picked in a date range, any status
- Best-selling items and sales per category: completed orders only

Revenue here is the sum of item upcharges, not order prices; meal type base
prices belong to the order and are reported by the revenue endpoints.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select, func, distinct
from sqlalchemy.ext.asyncio import AsyncSession

from pos_api.models import Order, Meal, MealDetail, MenuItem, Inventory, OrderStatus
from pos_api.services.reports import order_day, DEFAULT_WINDOW_DAYS

logger = logging.getLogger(__name__)

DEFAULT_BEST_SELLER_LIMIT = 50


class AnalyticsValidationError(Exception):
    """Query parameters the analytics endpoints cannot work with."""


def parse_usage_range(start: Optional[str], end: Optional[str]) -> tuple[date, date]:
    """
    Parse the product usage window.

    Both bounds are required and inclusive. Plain dates and ISO timestamps are
    accepted; only the calendar day is kept.
    """
    if not start or not end:
        raise AnalyticsValidationError("Start date and end date are required")
    try:
        return datetime.fromisoformat(start).date(), datetime.fromisoformat(end).date()
    except ValueError as e:
        raise AnalyticsValidationError("Invalid date format") from e


def _completed_item_sales(start_date: Optional[date], end_date: Optional[date]):
    """Meal details of completed orders in the range (default: last 30 days)."""
    query = (
        select(MealDetail)
        .join(Meal, MealDetail.meal_id == Meal.meal_id)
        .join(Order, Meal.order_id == Order.order_id)
        .join(MenuItem, MealDetail.menu_item_id == MenuItem.menu_item_id)
        .where(Order.order_status == OrderStatus.COMPLETED.value)
    )
    if start_date is not None and end_date is not None:
        return query.where(order_day >= start_date, order_day <= end_date)
    return query.where(order_day >= date.today() - timedelta(days=DEFAULT_WINDOW_DAYS))


# =============================================================================
# PRODUCT USAGE
# =============================================================================

async def product_usage(db: AsyncSession, start_date: date, end_date: date) -> dict[str, Any]:
    """Selections per menu item with its current stock, most used first."""
    count = func.count(MealDetail.detail_id).label("count")
    result = await db.execute(
        select(
            MenuItem.menu_item_id,
            MenuItem.name,
            MenuItem.item_type,
            Inventory.inventory_id,
            Inventory.stock,
            count,
        )
        .select_from(MealDetail)
        .join(Meal, MealDetail.meal_id == Meal.meal_id)
        .join(Order, Meal.order_id == Order.order_id)
        .join(MenuItem, MealDetail.menu_item_id == MenuItem.menu_item_id)
        .outerjoin(Inventory, Inventory.menu_item_id == MenuItem.menu_item_id)
        .where(order_day >= start_date, order_day <= end_date)
        .group_by(
            MenuItem.menu_item_id,
            MenuItem.name,
            MenuItem.item_type,
            Inventory.inventory_id,
            Inventory.stock,
        )
        .order_by(count.desc(), MenuItem.menu_item_id)
    )

    usage = [
        {
            "menu_item_id": row.menu_item_id,
            "name": row.name,
            "item_type": row.item_type,
            "count": int(row.count),
            "inventory_id": row.inventory_id,
            "current_stock": row.stock,
        }
        for row in result
    ]
    logger.debug(f"Product usage {start_date}..{end_date}: {len(usage)} items")
    return {
        "startDate": start_date,
        "endDate": end_date,
        "totalItems": sum(entry["count"] for entry in usage),
        "uniqueItems": len(usage),
        "usage": usage,
    }


# =============================================================================
# SALES ANALYTICS
# =============================================================================

async def best_selling_items(
    db: AsyncSession,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    item_type: Optional[str] = None,
    limit: int = DEFAULT_BEST_SELLER_LIMIT,
) -> list[dict[str, Any]]:
    """
    Items ranked by times sold, then by upcharge revenue.

    `role` lists every role the item was sold in ("entree, side").
    """
    sub = _completed_item_sales(start_date, end_date)
    if item_type:
        sub = sub.where(MenuItem.item_type == item_type.strip().lower())
    sub = sub.subquery()

    result = await db.execute(
        select(
            MenuItem.menu_item_id,
            MenuItem.name,
            MenuItem.item_type,
            MenuItem.upcharge,
            sub.c.role,
            func.count().label("quantity"),
        )
        .select_from(MenuItem)
        .join(sub, sub.c.menu_item_id == MenuItem.menu_item_id)
        .group_by(
            MenuItem.menu_item_id,
            MenuItem.name,
            MenuItem.item_type,
            MenuItem.upcharge,
            sub.c.role,
        )
    )

    # One row per (item, role); folded here since role aggregation is dialect specific
    items: dict[int, dict[str, Any]] = {}
    for row in result:
        upcharge = float(row.upcharge or 0)
        entry = items.setdefault(row.menu_item_id, {
            "menu_item_id": row.menu_item_id,
            "name": row.name,
            "item_type": row.item_type,
            "upcharge": upcharge,
            "roles": set(),
            "total_quantity_sold": 0,
        })
        entry["roles"].add(row.role)
        entry["total_quantity_sold"] += int(row.quantity)

    ranked = []
    for entry in items.values():
        quantity = entry["total_quantity_sold"]
        ranked.append({
            "menu_item_id": entry["menu_item_id"],
            "name": entry["name"],
            "item_type": entry["item_type"],
            "upcharge": entry["upcharge"],
            "role": ", ".join(sorted(entry.pop("roles"))),
            "total_quantity_sold": quantity,
            "total_revenue": entry["upcharge"] * quantity,
            "average_price": entry["upcharge"],
        })
    ranked.sort(key=lambda e: (-e["total_quantity_sold"], -e["total_revenue"], e["menu_item_id"]))
    return ranked[:limit]


async def sales_by_category(
    db: AsyncSession,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[dict[str, Any]]:
    """Quantity sold, upcharge revenue and distinct items per item type."""
    sub = _completed_item_sales(start_date, end_date).subquery()
    quantity = func.count().label("total_quantity_sold")

    result = await db.execute(
        select(
            MenuItem.item_type.label("category"),
            quantity,
            func.coalesce(func.sum(MenuItem.upcharge), 0).label("total_revenue"),
            func.count(distinct(MenuItem.menu_item_id)).label("item_count"),
        )
        .select_from(MenuItem)
        .join(sub, sub.c.menu_item_id == MenuItem.menu_item_id)
        .group_by(MenuItem.item_type)
        .order_by(quantity.desc(), MenuItem.item_type)
    )
    return [
        {
            "category": row.category or "unknown",
            "total_quantity_sold": int(row.total_quantity_sold),
            "total_revenue": float(row.total_revenue or 0),
            "item_count": int(row.item_count),
        }
        for row in result
    ]
