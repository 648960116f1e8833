from datetime import datetime

import pytest

from pos_api.models import Order, Meal


@pytest.fixture
async def board(session_maker, seed):
    """Orders in every state; ids 1-5 in chronological order."""
    rows = [
        (1, "completed", 1, datetime(2026, 3, 14, 11, 0)),
        (2, "pending", 1, datetime(2026, 3, 14, 11, 5)),
        (3, None, 2, datetime(2026, 3, 14, 11, 10)),
        (4, "cancelled", 2, datetime(2026, 3, 14, 11, 15)),
        (5, "preparing", None, datetime(2026, 3, 14, 11, 20)),
    ]
    async with session_maker() as session:
        for order_id, status, staff_id, placed in rows:
            session.add(Order(
                order_id=order_id,
                price=10.0,
                order_status=status,
                staff_id=staff_id,
                datetime=placed,
            ))
        await session.flush()
        session.add_all([
            Meal(order_id=2, meal_type_id=1),
            Meal(order_id=2, meal_type_id=2),
            Meal(order_id=3, meal_type_id=1),
        ])
        await session.commit()


async def test_active_orders_exclude_terminal_statuses(client, board):
    response = await client.get("/api/orders/active")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    ids = [row["order_id"] for row in body["data"]]
    assert ids == [5, 3, 2]


async def test_active_order_rows_are_denormalised(client, board):
    response = await client.get("/api/orders/active")
    rows = {row["order_id"]: row for row in response.json()["data"]}

    assert rows[2]["staff_username"] == "kiosk"
    assert rows[2]["meal_count"] == 2
    assert rows[2]["order_status"] == "pending"

    assert rows[3]["order_status"] == "pending"
    assert rows[3]["staff_username"] == "alice"
    assert rows[3]["meal_count"] == 1

    assert rows[5]["staff_id"] is None
    assert rows[5]["staff_username"] is None
    assert rows[5]["meal_count"] == 0
    assert rows[5]["price"] == 10.0


async def test_no_active_orders(client, seed):
    response = await client.get("/api/orders/active")

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": []}
