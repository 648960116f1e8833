"""
Concurrent Kiosk Simulation Script

Fires many kiosk orders at the API at once and checks that every order
got its own id and the price the kiosk computed locally.
Run from project root: python scripts/simulate.py
"""

import asyncio
import sys
import os
import random
import time
import argparse
from collections import Counter
from datetime import datetime
from typing import Any

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from pos_api.core.config import get_settings
from pos_api.schemas import MealTypeResponse, MenuItemResponse
from pos_api.services.cart import OrderBuilder, CartError
from pos_api.services.kiosk_client import KioskClient, OrderSubmissionError

TOTAL_ORDERS = 50

CUSTOMER_NAMES = ["John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa", "Chris", "Amy"]


def build_random_order(
    meal_types: list[MealTypeResponse],
    menu_items: list[MenuItemResponse],
) -> OrderBuilder:
    """Fill a builder with 1-3 random meals using what is on the menu."""
    by_type: dict[str, list[MenuItemResponse]] = {"entree": [], "side": [], "drink": []}
    for item in menu_items:
        by_type.setdefault(item.item_type, []).append(item)

    builder = OrderBuilder()
    for _ in range(random.randint(1, 3)):
        meal_type = random.choice(meal_types)
        builder.start_meal(meal_type)
        try:
            for _ in range(meal_type.entree_count):
                builder.add_entree(random.choice(by_type["entree"]))
            for _ in range(meal_type.side_count):
                builder.add_side(random.choice(by_type["side"]))
            if meal_type.drink_size != "none" and by_type["drink"]:
                builder.set_drink(random.choice(by_type["drink"]))
            builder.commit_meal()
        except (CartError, IndexError):
            # Meal type needs an item class the menu currently lacks
            builder.current = None
    return builder


async def send_kiosk_order(
    kiosk: KioskClient,
    order_num: int,
    meal_types: list[MealTypeResponse],
    menu_items: list[MenuItemResponse],
) -> dict[str, Any]:
    """Build and submit one order, timing the round trip."""
    builder = build_random_order(meal_types, menu_items)
    if not builder.lines:
        return {"order_num": order_num, "success": False, "error": "Nothing orderable", "time": 0.0}

    expected = builder.total_price
    start_time = time.time()
    try:
        submitted = await kiosk.submit(builder, customer_name=random.choice(CUSTOMER_NAMES))
    except OrderSubmissionError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }
    return {
        "order_num": order_num,
        "success": True,
        "order_id": submitted.order_id,
        "total": submitted.price,
        "expected": expected,
        "price_matches": submitted.price == expected,
        "time": round(time.time() - start_time, 3),
    }


async def run_simulation(num_orders: int = TOTAL_ORDERS, base_url: str = None) -> dict[str, Any]:
    """
    Run the concurrency simulation.

    Args:
        num_orders: Number of orders submitted concurrently
        base_url: API base URL (defaults to KIOSK_API_URL)
    """
    base_url = base_url or get_settings().kiosk_api_url

    print("=" * 70)
    print("CONCURRENT KIOSK SIMULATION")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Target: {base_url}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with KioskClient(base_url=base_url, timeout=30.0) as kiosk:
        meal_types = await kiosk.get_meal_types()
        menu_items = await kiosk.get_menu_items(available_only=True)
        if not meal_types or not menu_items:
            print("\nMenu is empty; seed meal types and menu items first.")
            return {"total": num_orders, "successful": 0, "failed": num_orders, "duplicates": [], "mispriced": 0, "results": []}

        start_time = time.time()
        tasks = [
            send_kiosk_order(kiosk, i + 1, meal_types, menu_items)
            for i in range(num_orders)
        ]
        results = await asyncio.gather(*tasks)
        total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    id_counts = Counter(r["order_id"] for r in successful)
    duplicates = sorted(order_id for order_id, n in id_counts.items() if n > 1)
    mispriced = [r for r in successful if not r["price_matches"]]

    print("\n" + "=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)
    print(f"\nSuccessful Orders: {len(successful)}/{num_orders}")
    print(f"Failed Orders: {len(failed)}/{num_orders}")
    print(f"Duplicate Order IDs: {duplicates or 'none'}")
    print(f"Price Mismatches: {len(mispriced)}")
    print(f"Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r["total"] for r in successful)
        print("\nPerformance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   Total Revenue: ${total_revenue:.2f}")

    if mispriced:
        print("\nPrice Mismatches (showing first 5):")
        for r in mispriced[:5]:
            print(f"   Order #{r['order_id']}: kiosk ${r['expected']:.2f}, server ${r['total']:.2f}")

    if failed:
        print("\nFailed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "duplicates": duplicates,
        "mispriced": len(mispriced),
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrent Kiosk Simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--url", default=None, help="API base URL")
    args = parser.parse_args()

    summary = asyncio.run(run_simulation(args.orders, args.url))
    if summary["duplicates"] or summary["failed"] or summary["mispriced"]:
        sys.exit(1)
