from datetime import time

import pytest

from pos_api.services import menu as menu_service
from pos_api.services.menu import is_within_availability_window, describe_allergens


# =============================================================================
# AVAILABILITY WINDOW
# =============================================================================

@pytest.mark.parametrize("now, expected", [
    (time(6, 0), True),
    (time(8, 30), True),
    (time(10, 0), True),
    (time(10, 1), False),
    (time(5, 59), False),
])
def test_daytime_window_is_inclusive(now, expected):
    assert is_within_availability_window(time(6, 0), time(10, 0), now) is expected


@pytest.mark.parametrize("now, expected", [
    (time(23, 30), True),
    (time(1, 0), True),
    (time(2, 0), True),
    (time(12, 0), False),
])
def test_window_crossing_midnight(now, expected):
    assert is_within_availability_window(time(22, 0), time(2, 0), now) is expected


def test_missing_bound_means_always_available():
    assert is_within_availability_window(None, time(10, 0), time(23, 0))
    assert is_within_availability_window(time(6, 0), None, time(3, 0))


def test_describe_allergens():
    assert describe_allergens(["soy", "egg"]) == "Contains: soy, egg"
    assert describe_allergens([]) == "No major allergens"
    assert describe_allergens(None) is None


async def test_orderable_items_at_noon(db, seed):
    items = await menu_service.list_menu_items(db, available_only=True, now=time(12, 0))

    # out of stock, outside its window and switched off are all hidden
    assert [i["menu_item_id"] for i in items] == [1, 2, 3, 5]


async def test_breakfast_item_orderable_in_the_morning(db, seed):
    items = await menu_service.list_menu_items(db, available_only=True, now=time(7, 30))

    assert 6 in [i["menu_item_id"] for i in items]


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

async def test_list_all_menu_items_with_stock(client, seed):
    response = await client.get("/api/menu-items")

    assert response.status_code == 200
    items = {i["menu_item_id"]: i for i in response.json()}
    assert len(items) == 7
    assert items[1]["stock"] == 50
    assert items[1]["allergens"] == ["soy", "wheat"]
    assert items[7]["stock"] == 0


async def test_list_available_filters_out_unorderable(client, seed):
    response = await client.get("/api/menu-items", params={"is_available": "true"})

    ids = [i["menu_item_id"] for i in response.json()]
    assert 1 in ids
    assert 4 not in ids
    assert 7 not in ids


async def test_list_by_type_query(client, seed):
    response = await client.get("/api/menu-items", params={"type": "side"})

    assert [i["menu_item_id"] for i in response.json()] == [3, 4, 7]


async def test_available_endpoint_ignores_stock(client, seed):
    response = await client.get("/api/menu-items/available")

    ids = [i["menu_item_id"] for i in response.json()]
    assert 4 in ids
    assert 7 not in ids


async def test_inventory_endpoint_includes_reorder_levels(client, seed):
    response = await client.get("/api/menu-items/inventory")

    items = {i["menu_item_id"]: i for i in response.json()}
    assert items[2]["stock"] == 20
    assert items[2]["reorder"] == 5
    assert items[7]["reorder"] is None


async def test_type_endpoint(client, seed):
    response = await client.get("/api/menu-items/type/ENTREE")

    assert [i["menu_item_id"] for i in response.json()] == [1, 2, 6]


async def test_get_menu_item(client, seed):
    response = await client.get("/api/menu-items/6")

    assert response.status_code == 200
    assert response.json()["availability_start_time"] == "06:00:00"

    missing = await client.get("/api/menu-items/999")
    assert missing.status_code == 404
    assert missing.json()["success"] is False


async def test_create_menu_item_with_inventory(client, seed):
    response = await client.post("/api/menu-items", json={
        "name": "Kung Pao Chicken",
        "upcharge": 0,
        "item_type": "Entree",
        "stock": 30,
        "reorder": 8,
        "storage": "freezer",
        "allergens": ["peanut", "soy"],
        "availability_start_time": "",
    })

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["item_type"] == "entree"
    assert data["allergen_info"] == "Contains: peanut, soy"
    assert data["availability_start_time"] is None
    assert data["stock"] == 30

    inventory = await client.get("/api/menu-items/inventory")
    created = [i for i in inventory.json() if i["menu_item_id"] == data["menu_item_id"]]
    assert created[0]["reorder"] == 8


async def test_create_menu_item_without_allergens_list(client, seed):
    response = await client.post("/api/menu-items", json={
        "name": "Steamed Rice",
        "item_type": "side",
        "stock": 10,
        "reorder": 2,
        "storage": "dry",
        "allergens": [],
    })

    assert response.status_code == 201
    assert response.json()["data"]["allergen_info"] == "No major allergens"


async def test_create_menu_item_rejects_unknown_type(client, seed):
    response = await client.post("/api/menu-items", json={
        "name": "Mystery",
        "item_type": "dessert",
        "stock": 1,
        "reorder": 1,
        "storage": "dry",
    })

    assert response.status_code == 400
    assert "item_type" in response.json()["error"]


async def test_create_menu_item_rejects_taken_id(client, seed):
    response = await client.post("/api/menu-items", json={
        "menu_item_id": 1,
        "name": "Duplicate",
        "item_type": "entree",
        "stock": 1,
        "reorder": 1,
        "storage": "dry",
    })

    assert response.status_code == 409


async def test_create_menu_item_requires_inventory_fields(client, seed):
    response = await client.post("/api/menu-items", json={"name": "No stock", "item_type": "side"})

    assert response.status_code == 400
    assert response.json()["success"] is False


async def test_update_menu_item(client, seed):
    response = await client.put("/api/menu-items/2", json={"upcharge": 2.0, "allergens": ["shellfish"]})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["upcharge"] == 2.0
    assert data["name"] == "Honey Walnut Shrimp"
    assert data["allergen_info"] == "Contains: shellfish"


async def test_clearing_allergens_clears_their_description(client, seed):
    response = await client.put("/api/menu-items/1", json={"allergens": None})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["allergens"] is None
    assert data["allergen_info"] is None

    stored = (await client.get("/api/menu-items/1")).json()
    assert stored["allergen_info"] is None


async def test_update_menu_item_requires_a_field(client, seed):
    response = await client.put("/api/menu-items/2", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "Provide at least one field to update"


async def test_update_missing_menu_item(client, seed):
    response = await client.put("/api/menu-items/999", json={"name": "Ghost"})

    assert response.status_code == 404


async def test_deactivate_menu_item(client, seed):
    response = await client.put("/api/menu-items/1/deactivate")

    assert response.status_code == 200
    assert response.json()["data"]["is_available"] is False

    available = await client.get("/api/menu-items/available")
    assert 1 not in [i["menu_item_id"] for i in available.json()]


async def test_delete_menu_item_removes_inventory(client, seed):
    response = await client.delete("/api/menu-items/3")

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Chow Mein"
    assert (await client.get("/api/menu-items/3")).status_code == 404

    inventory = await client.get("/api/menu-items/inventory")
    assert 3 not in [i["menu_item_id"] for i in inventory.json()]


async def test_delete_missing_menu_item(client, seed):
    response = await client.delete("/api/menu-items/999")

    assert response.status_code == 404


# =============================================================================
# MEAL TYPES & STAFF
# =============================================================================

async def test_list_meal_types(client, seed):
    response = await client.get("/api/meal-types")

    assert response.status_code == 200
    names = [m["meal_type_name"] for m in response.json()]
    assert names == ["Bowl", "Plate", "Kids Meal", "Drink"]


async def test_get_meal_type(client, seed):
    response = await client.get("/api/meal-types/2")

    assert response.json()["entree_count"] == 2

    missing = await client.get("/api/meal-types/99")
    assert missing.status_code == 404
    assert missing.json()["error"] == "Meal type not found"


async def test_list_staff(client, seed):
    response = await client.get("/api/staff")

    assert [s["username"] for s in response.json()] == ["kiosk", "alice"]
