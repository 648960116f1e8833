"""
Menu Catalogue Service

Menu items, their inventory rows and meal types.

Customer-facing listings only show items that are switched on, inside
their daily availability window and in stock. Manager screens see every
item together with stock and reorder levels.
"""

import logging
from datetime import datetime, time
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pos_api.models import MenuItem, Inventory, MealType, Staff, ItemType
from pos_api.schemas import MenuItemCreate, MenuItemUpdate

logger = logging.getLogger(__name__)

VALID_ITEM_TYPES = [t.value for t in ItemType]


class MenuItemValidationError(ValueError):
    """Menu item payload is not acceptable."""


class MenuItemNotFoundError(LookupError):
    """No menu item with the requested id."""


class MenuItemConflictError(ValueError):
    """A menu item with the requested id already exists."""


# =============================================================================
# AVAILABILITY
# =============================================================================

def is_within_availability_window(
    start: Optional[time],
    end: Optional[time],
    now: Optional[time] = None,
) -> bool:
    """
    Check whether `now` falls inside a daily availability window.

    Bounds are inclusive and compared to the minute. A window whose start is
    after its end crosses midnight (22:00 -> 02:00). Items with either bound
    missing are always available.
    """
    if start is None or end is None:
        return True

    if now is None:
        now = datetime.now().time()

    current = now.hour * 60 + now.minute
    start_minutes = start.hour * 60 + start.minute
    end_minutes = end.hour * 60 + end.minute

    if start_minutes > end_minutes:
        return current >= start_minutes or current <= end_minutes
    return start_minutes <= current <= end_minutes


def is_orderable(item: MenuItem, now: Optional[time] = None) -> bool:
    if not item.is_available:
        return False
    return is_within_availability_window(
        item.availability_start_time, item.availability_end_time, now
    )


def describe_allergens(allergens: Optional[list[str]]) -> Optional[str]:
    """Human readable allergen line generated when none was supplied."""
    if allergens is None:
        return None
    if allergens:
        return f"Contains: {', '.join(allergens)}"
    return "No major allergens"


def normalize_item_type(item_type: str) -> str:
    value = item_type.strip().lower()
    if value not in VALID_ITEM_TYPES:
        raise MenuItemValidationError(
            f"item_type must be one of: {', '.join(VALID_ITEM_TYPES)}"
        )
    return value


def menu_item_to_dict(
    item: MenuItem,
    inventory: Optional[Inventory] = None,
    with_stock: bool = False,
    with_reorder: bool = False,
) -> dict[str, Any]:
    data = {
        "menu_item_id": item.menu_item_id,
        "name": item.name,
        "upcharge": item.upcharge,
        "is_available": item.is_available,
        "item_type": item.item_type,
        "availability_start_time": item.availability_start_time,
        "availability_end_time": item.availability_end_time,
        "allergens": item.allergens,
        "allergen_info": item.allergen_info,
    }
    if with_stock:
        data["stock"] = inventory.stock if inventory else 0
    if with_reorder:
        data["reorder"] = inventory.reorder if inventory else None
    return data


# =============================================================================
# MENU ITEM QUERIES
# =============================================================================

async def list_menu_items(
    db: AsyncSession,
    available_only: bool = False,
    item_type: Optional[str] = None,
    now: Optional[time] = None,
) -> list[dict[str, Any]]:
    """
    All menu items with their stock.

    With `available_only` the list is what a customer may order right now:
    switched on, inside the availability window and with stock left.
    """
    query = (
        select(MenuItem, Inventory)
        .outerjoin(Inventory, MenuItem.menu_item_id == Inventory.menu_item_id)
        .order_by(MenuItem.menu_item_id)
    )
    if item_type:
        query = query.where(MenuItem.item_type == item_type.lower())
    if available_only:
        query = query.where(MenuItem.is_available.is_(True))

    result = await db.execute(query)
    rows = result.all()

    items = []
    for item, inventory in rows:
        if available_only:
            if not is_orderable(item, now):
                continue
            if inventory is None or inventory.stock <= 0:
                continue
        items.append(menu_item_to_dict(item, inventory, with_stock=True))
    return items


async def list_available_menu_items(
    db: AsyncSession,
    now: Optional[time] = None,
) -> list[MenuItem]:
    """Items switched on and inside their window, regardless of stock."""
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.is_available.is_(True))
        .order_by(MenuItem.menu_item_id)
    )
    return [item for item in result.scalars() if is_orderable(item, now)]


async def list_menu_items_with_inventory(db: AsyncSession) -> list[dict[str, Any]]:
    result = await db.execute(
        select(MenuItem, Inventory)
        .outerjoin(Inventory, MenuItem.menu_item_id == Inventory.menu_item_id)
        .order_by(MenuItem.menu_item_id)
    )
    return [
        menu_item_to_dict(item, inventory, with_stock=True, with_reorder=True)
        for item, inventory in result.all()
    ]


async def list_menu_items_by_type(db: AsyncSession, item_type: str) -> list[MenuItem]:
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.item_type == item_type.lower())
        .order_by(MenuItem.menu_item_id)
    )
    return list(result.scalars())


async def get_menu_item(db: AsyncSession, menu_item_id: int) -> MenuItem:
    item = await db.get(MenuItem, menu_item_id)
    if item is None:
        raise MenuItemNotFoundError(f"Menu item {menu_item_id} not found")
    return item


# =============================================================================
# MENU ITEM MUTATIONS
# =============================================================================

async def create_menu_item(db: AsyncSession, data: MenuItemCreate) -> MenuItem:
    """
    Add a menu item and its inventory row in one transaction.

    Raises:
        MenuItemValidationError: Unknown item_type
        MenuItemConflictError: Explicit menu_item_id already taken
    """
    item_type = normalize_item_type(data.item_type)

    if data.menu_item_id is not None:
        existing = await db.get(MenuItem, data.menu_item_id)
        if existing is not None:
            raise MenuItemConflictError(
                f"Menu item with ID {data.menu_item_id} already exists"
            )

    allergen_info = data.allergen_info or describe_allergens(data.allergens)

    item = MenuItem(
        name=data.name,
        upcharge=data.upcharge,
        is_available=data.is_available,
        item_type=item_type,
        availability_start_time=data.availability_start_time,
        availability_end_time=data.availability_end_time,
        allergens=data.allergens,
        allergen_info=allergen_info,
    )
    if data.menu_item_id is not None:
        item.menu_item_id = data.menu_item_id

    try:
        db.add(item)
        await db.flush()  # get menu_item_id
        db.add(Inventory(
            menu_item_id=item.menu_item_id,
            stock=data.stock,
            reorder=data.reorder,
            storage=data.storage,
        ))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Menu item #{item.menu_item_id} created: {item.name} ({item.item_type})")
    return item


async def update_menu_item(
    db: AsyncSession,
    menu_item_id: int,
    data: MenuItemUpdate,
) -> MenuItem:
    """
    Apply the fields present in the request body.

    When allergens change without an explicit allergen_info the description
    is regenerated.
    """
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise MenuItemValidationError("Provide at least one field to update")

    item = await get_menu_item(db, menu_item_id)

    if "item_type" in changes:
        if changes["item_type"] is None:
            raise MenuItemValidationError("item_type cannot be empty")
        changes["item_type"] = normalize_item_type(changes["item_type"])
    if "allergens" in changes and "allergen_info" not in changes:
        changes["allergen_info"] = describe_allergens(changes["allergens"])
    for required in ("name", "upcharge", "is_available"):
        if required in changes and changes[required] is None:
            raise MenuItemValidationError(f"{required} cannot be empty")

    for field, value in changes.items():
        setattr(item, field, value)

    await db.commit()
    await db.refresh(item)
    logger.info(f"Menu item #{menu_item_id} updated: {sorted(changes)}")
    return item


async def deactivate_menu_item(db: AsyncSession, menu_item_id: int) -> MenuItem:
    item = await get_menu_item(db, menu_item_id)
    item.is_available = False
    await db.commit()
    logger.info(f"Menu item #{menu_item_id} deactivated")
    return item


async def delete_menu_item(db: AsyncSession, menu_item_id: int) -> MenuItem:
    """Delete a menu item; its inventory row goes with it."""
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.menu_item_id == menu_item_id)
        .options(selectinload(MenuItem.inventory))
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise MenuItemNotFoundError(f"Menu item {menu_item_id} not found")

    await db.delete(item)
    await db.commit()
    logger.info(f"Menu item #{menu_item_id} deleted")
    return item


# =============================================================================
# MEAL TYPES & STAFF
# =============================================================================

async def list_meal_types(db: AsyncSession) -> list[MealType]:
    result = await db.execute(select(MealType).order_by(MealType.meal_type_id))
    return list(result.scalars())


async def get_meal_type(db: AsyncSession, meal_type_id: int) -> Optional[MealType]:
    return await db.get(MealType, meal_type_id)


async def list_staff(db: AsyncSession) -> list[Staff]:
    result = await db.execute(select(Staff).order_by(Staff.staff_id))
    return list(result.scalars())
