"""
Order pricing shared by the API and the kiosk builder.

Works on anything carrying `meal_type_price` / `upcharge` attributes, so
ORM rows and the kiosk's catalogue snapshots are priced identically.
Meals are summed unrounded; only the order total is rounded to cents.
"""

from typing import Any, Iterable, Optional


def meal_price(
    meal_type: Any,
    entrees: Iterable[Any],
    sides: Iterable[Any],
    drink: Optional[Any] = None,
) -> float:
    """Meal type base price plus the upcharge of every selection."""
    price = meal_type.meal_type_price or 0.0
    for item in [*entrees, *sides]:
        price += item.upcharge or 0.0
    if drink is not None:
        price += drink.upcharge or 0.0
    return price


def order_total(meal_prices: Iterable[float]) -> float:
    return round(sum(meal_prices), 2)
