"""
Order Service

Creates orders from kiosk/cashier submissions and reads them back for the
kitchen and manager screens.

Order creation runs as a single unit of work on the request's session:
the order row, one meal per submitted item and one detail row per
entree/side selection are either all committed or all rolled back.
Identifiers are generated by the database and read back with a flush.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import select, func, distinct, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pos_api.core.config import get_settings
from pos_api.models import (
    Order,
    Meal,
    MealDetail,
    MealType,
    MenuItem,
    Staff,
    OrderStatus,
    DetailRole,
)
from pos_api.schemas import OrderCreate, OrderItemCreate
from pos_api.services.pricing import meal_price, order_total

settings = get_settings()
logger = logging.getLogger(__name__)


class OrderValidationError(ValueError):
    """Submitted order references something that does not exist."""


@dataclass
class CreatedOrder:
    order_id: int
    price: float
    meal_count: int
    detail_count: int


def price_order_item(
    item: OrderItemCreate,
    meal_types: dict[int, MealType],
    menu_items: dict[int, MenuItem],
) -> float:
    """Unrounded price of one submitted meal, from catalogue rows only."""
    return meal_price(
        meal_types[item.meal_type.meal_type_id],
        [menu_items[ref.menu_item_id] for ref in item.entrees],
        [menu_items[ref.menu_item_id] for ref in item.sides],
        menu_items[item.drink.menu_item_id] if item.drink is not None else None,
    )


async def _load_catalogue(
    db: AsyncSession,
    items: Iterable[OrderItemCreate],
) -> tuple[dict[int, MealType], dict[int, MenuItem]]:
    """Fetch every meal type and menu item referenced by the order."""
    items = list(items)
    meal_type_ids = {item.meal_type.meal_type_id for item in items}
    menu_item_ids = set()
    for item in items:
        menu_item_ids.update(ref.menu_item_id for ref in [*item.entrees, *item.sides])
        if item.drink is not None:
            menu_item_ids.add(item.drink.menu_item_id)

    result = await db.execute(
        select(MealType).where(MealType.meal_type_id.in_(meal_type_ids))
    )
    meal_types = {mt.meal_type_id: mt for mt in result.scalars()}

    menu_items: dict[int, MenuItem] = {}
    if menu_item_ids:
        result = await db.execute(
            select(MenuItem).where(MenuItem.menu_item_id.in_(menu_item_ids))
        )
        menu_items = {mi.menu_item_id: mi for mi in result.scalars()}

    missing_types = sorted(meal_type_ids - meal_types.keys())
    if missing_types:
        raise OrderValidationError(f"Unknown meal type(s): {missing_types}")
    missing_items = sorted(menu_item_ids - menu_items.keys())
    if missing_items:
        raise OrderValidationError(f"Unknown menu item(s): {missing_items}")

    return meal_types, menu_items


def _add_meal_details(db: AsyncSession, meal: Meal, item: OrderItemCreate) -> int:
    """Stage one detail row per entree and side selection of a meal."""
    meal_type_id = item.meal_type.meal_type_id
    count = 0
    for role, refs in ((DetailRole.ENTREE, item.entrees), (DetailRole.SIDE, item.sides)):
        for ref in refs:
            db.add(MealDetail(
                meal_id=meal.meal_id,
                meal_type_id=meal_type_id,
                menu_item_id=ref.menu_item_id,
                role=role.value,
            ))
            count += 1
    return count


async def create_order(db: AsyncSession, order_data: OrderCreate) -> CreatedOrder:
    """
    Materialise an order, its meals and their details in one transaction.

    Args:
        db: Request-scoped session
        order_data: Validated submission (at least one item)

    Returns:
        CreatedOrder with the generated order id and computed price

    Raises:
        OrderValidationError: A meal type or menu item id is unknown
        SQLAlchemyError: Any database failure; nothing is persisted
    """
    try:
        meal_types, menu_items = await _load_catalogue(db, order_data.order_items)

        total = order_total(
            price_order_item(item, meal_types, menu_items) for item in order_data.order_items
        )

        order = Order(
            price=total,
            order_status=OrderStatus.PENDING.value,
            staff_id=order_data.staff_id or settings.default_staff_id,
            customer_name=order_data.customer_name,
        )
        db.add(order)
        await db.flush()  # get order_id

        detail_count = 0
        for item in order_data.order_items:
            meal = Meal(order_id=order.order_id, meal_type_id=item.meal_type.meal_type_id)
            db.add(meal)
            await db.flush()  # get meal_id
            detail_count += _add_meal_details(db, meal, item)

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Order #{order.order_id} created: {len(order_data.order_items)} meal(s), "
        f"{detail_count} detail(s), total ${total:.2f}"
    )
    return CreatedOrder(
        order_id=order.order_id,
        price=total,
        meal_count=len(order_data.order_items),
        detail_count=detail_count,
    )


async def list_active_orders(db: AsyncSession) -> list[dict]:
    """
    Orders that have not reached a terminal status, newest first.

    Each row carries the staff username and the number of meals.
    Status NULL counts as active and is reported as "pending".
    """
    terminal = settings.terminal_order_statuses_list
    meal_count = func.count(distinct(Meal.meal_id)).label("meal_count")

    query = (
        select(
            Order.order_id,
            Order.staff_id,
            Order.datetime,
            Order.price,
            Order.order_status,
            Staff.username.label("staff_username"),
            meal_count,
        )
        .outerjoin(Staff, Order.staff_id == Staff.staff_id)
        .outerjoin(Meal, Order.order_id == Meal.order_id)
        .where(or_(Order.order_status.is_(None), Order.order_status.notin_(terminal)))
        .group_by(
            Order.order_id,
            Order.staff_id,
            Order.datetime,
            Order.price,
            Order.order_status,
            Staff.username,
        )
        .order_by(Order.datetime.desc().nulls_last(), Order.order_id.desc())
    )

    result = await db.execute(query)
    return [
        {
            "order_id": row.order_id,
            "staff_id": row.staff_id,
            "staff_username": row.staff_username,
            "datetime": row.datetime,
            "price": float(row.price) if row.price else 0.0,
            "order_status": row.order_status or OrderStatus.PENDING.value,
            "meal_count": int(row.meal_count or 0),
        }
        for row in result
    ]


async def get_order(db: AsyncSession, order_id: int) -> Optional[Order]:
    """Load one order with its meals and their details."""
    result = await db.execute(
        select(Order)
        .where(Order.order_id == order_id)
        .options(selectinload(Order.meals).selectinload(Meal.details))
    )
    return result.scalar_one_or_none()
