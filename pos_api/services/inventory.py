"""
Inventory Service

Stock views for the manager's inventory page and the partial update used
when a delivery is counted in. Only food inventory (rows tied to a menu
item) is tracked.
"""

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pos_api.core.config import get_settings
from pos_api.models import Inventory, MenuItem
from pos_api.schemas import InventoryUpdate

settings = get_settings()
logger = logging.getLogger(__name__)


class InventoryNotFoundError(Exception):
    pass


class InventoryValidationError(Exception):
    pass


def _inventory_to_dict(inventory: Inventory, item: MenuItem) -> dict[str, Any]:
    return {
        "inventory_id": inventory.inventory_id,
        "menu_item_id": inventory.menu_item_id,
        "name": item.name,
        "item_type": item.item_type,
        "stock": inventory.stock,
        "reorder": inventory.reorder,
        "storage": inventory.storage,
    }


async def _inventory_rows(db: AsyncSession, *criteria) -> list[dict[str, Any]]:
    result = await db.execute(
        select(Inventory, MenuItem)
        .join(MenuItem, Inventory.menu_item_id == MenuItem.menu_item_id)
        .where(*criteria)
        .order_by(Inventory.stock, Inventory.inventory_id)
    )
    return [_inventory_to_dict(inventory, item) for inventory, item in result.all()]


async def low_stock(db: AsyncSession) -> list[dict[str, Any]]:
    """Items at or below their reorder level, emptiest first."""
    return await _inventory_rows(db, Inventory.stock <= Inventory.reorder)


async def restock_report(db: AsyncSession, threshold: Optional[int] = None) -> list[dict[str, Any]]:
    """Items whose stock is below the restock threshold (default from settings)."""
    if threshold is None:
        threshold = settings.restock_threshold
    return await _inventory_rows(db, Inventory.stock < threshold)


async def update_inventory_item(
    db: AsyncSession,
    inventory_id: int,
    data: InventoryUpdate,
) -> dict[str, Any]:
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise InventoryValidationError("Provide at least one field to update")
    for field, value in changes.items():
        if value is None:
            raise InventoryValidationError(f"{field} cannot be empty")

    row = (await db.execute(
        select(Inventory, MenuItem)
        .join(MenuItem, Inventory.menu_item_id == MenuItem.menu_item_id)
        .where(Inventory.inventory_id == inventory_id)
    )).first()
    if row is None:
        raise InventoryNotFoundError(f"Inventory item #{inventory_id} not found")
    inventory, item = row

    for field, value in changes.items():
        setattr(inventory, field, value)
    await db.commit()
    await db.refresh(inventory)

    logger.info(f"Inventory #{inventory_id} ({item.name}) updated: {changes}")
    return _inventory_to_dict(inventory, item)
