"""
Kiosk Order Builder

Client-side accumulation of an order before it is submitted to
POST /api/orders. A customer (or cashier) picks a meal type, fills its
entree and side slots, optionally chooses a drink, and commits the meal
to the order. Committed meals can be edited or removed until the order
is submitted.

The builder holds snapshots of the catalogue rows the kiosk fetched, so
it can price the order locally with the same helpers the server uses
(`pos_api.services.pricing`).
Only ids end up in the submitted payload.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from pos_api.schemas import MealTypeResponse, MenuItemResponse
from pos_api.services.pricing import meal_price, order_total

NO_DRINK = "none"


class CartError(ValueError):
    """Selection not allowed for the current meal."""


@dataclass
class OrderLine:
    """One meal in the order: a meal type and the items chosen for it."""
    meal_type: MealTypeResponse
    entrees: list[MenuItemResponse] = field(default_factory=list)
    sides: list[MenuItemResponse] = field(default_factory=list)
    drink: Optional[MenuItemResponse] = None

    @property
    def price(self) -> float:
        """Unrounded; the order total is what gets rounded."""
        return meal_price(self.meal_type, self.entrees, self.sides, self.drink)

    @property
    def is_complete(self) -> bool:
        return (
            len(self.entrees) == self.meal_type.entree_count
            and len(self.sides) == self.meal_type.side_count
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "mealType": {"meal_type_id": self.meal_type.meal_type_id},
            "entrees": [{"menu_item_id": item.menu_item_id} for item in self.entrees],
            "sides": [{"menu_item_id": item.menu_item_id} for item in self.sides],
        }
        if self.drink is not None:
            payload["drink"] = {"menu_item_id": self.drink.menu_item_id}
        return payload


class OrderBuilder:
    """
    Accumulates meals for one order.

    Usage:
        builder = OrderBuilder()
        builder.start_meal(plate)
        builder.add_entree(orange_chicken)
        builder.add_side(chow_mein)
        builder.commit_meal()
        payload = builder.to_payload()
    """

    def __init__(self) -> None:
        self.lines: list[OrderLine] = []
        self.current: Optional[OrderLine] = None
        self._editing: Optional[int] = None

    # -------------------------------------------------------------------------
    # Current selection
    # -------------------------------------------------------------------------

    def start_meal(self, meal_type: MealTypeResponse) -> OrderLine:
        """Begin a new meal, discarding any uncommitted selection."""
        self.current = OrderLine(meal_type=meal_type)
        self._editing = None
        return self.current

    def _require_current(self) -> OrderLine:
        if self.current is None:
            raise CartError("Choose a meal type first")
        return self.current

    @staticmethod
    def _check_type(item: MenuItemResponse, expected: str) -> None:
        if item.item_type != expected:
            raise CartError(f"{item.name} is not a {expected}")

    def add_entree(self, item: MenuItemResponse) -> None:
        line = self._require_current()
        self._check_type(item, "entree")
        if len(line.entrees) >= line.meal_type.entree_count:
            raise CartError(
                f"{line.meal_type.meal_type_name} includes "
                f"{line.meal_type.entree_count} entree(s)"
            )
        line.entrees.append(item)

    def add_side(self, item: MenuItemResponse) -> None:
        line = self._require_current()
        self._check_type(item, "side")
        if len(line.sides) >= line.meal_type.side_count:
            raise CartError(
                f"{line.meal_type.meal_type_name} includes "
                f"{line.meal_type.side_count} side(s)"
            )
        line.sides.append(item)

    def remove_entree(self, menu_item_id: int) -> None:
        line = self._require_current()
        line.entrees = _drop_one(line.entrees, menu_item_id)

    def remove_side(self, menu_item_id: int) -> None:
        line = self._require_current()
        line.sides = _drop_one(line.sides, menu_item_id)

    def set_drink(self, item: MenuItemResponse) -> None:
        """Select a drink; picking the selected drink again clears it."""
        line = self._require_current()
        self._check_type(item, "drink")
        if line.meal_type.drink_size == NO_DRINK:
            raise CartError(f"{line.meal_type.meal_type_name} does not include a drink")
        if line.drink is not None and line.drink.menu_item_id == item.menu_item_id:
            line.drink = None
        else:
            line.drink = item

    def commit_meal(self) -> OrderLine:
        """
        Add the current selection to the order, or write it back over the
        line being edited.
        """
        line = self._require_current()
        if not line.entrees and not line.sides and line.drink is None:
            raise CartError("Select at least one item")

        if self._editing is not None:
            self.lines[self._editing] = line
        else:
            self.lines.append(line)

        self.current = None
        self._editing = None
        return line

    # -------------------------------------------------------------------------
    # Committed lines
    # -------------------------------------------------------------------------

    def add_drink(self, meal_type: MealTypeResponse, drink: MenuItemResponse) -> OrderLine:
        """A la carte drink: its own line with no entrees or sides."""
        self._check_type(drink, "drink")
        line = OrderLine(meal_type=meal_type, drink=drink)
        self.lines.append(line)
        return line

    def edit(self, index: int) -> OrderLine:
        """Load a committed line back into the current selection."""
        original = self.lines[index]
        self.current = OrderLine(
            meal_type=original.meal_type,
            entrees=list(original.entrees),
            sides=list(original.sides),
            drink=original.drink,
        )
        self._editing = index
        return self.current

    def remove(self, index: int) -> OrderLine:
        line = self.lines.pop(index)
        if self._editing is not None:
            if self._editing == index:
                self.current = None
                self._editing = None
            elif self._editing > index:
                self._editing -= 1
        return line

    def clear(self) -> None:
        self.lines = []
        self.current = None
        self._editing = None

    @property
    def item_count(self) -> int:
        return len(self.lines)

    @property
    def total_price(self) -> float:
        return order_total(line.price for line in self.lines)

    def to_payload(
        self,
        staff_id: Optional[int] = None,
        customer_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """Body for POST /api/orders."""
        if not self.lines:
            raise CartError("Order is empty")
        payload: dict[str, Any] = {"order_items": [line.to_payload() for line in self.lines]}
        if staff_id is not None:
            payload["staff_id"] = staff_id
        if customer_name:
            payload["customer_name"] = customer_name
        return payload


def _drop_one(items: list[MenuItemResponse], menu_item_id: int) -> list[MenuItemResponse]:
    for i, item in enumerate(items):
        if item.menu_item_id == menu_item_id:
            return items[:i] + items[i + 1:]
    raise CartError(f"Menu item {menu_item_id} is not selected")
