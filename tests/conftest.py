"""
Shared fixtures: a throwaway SQLite database per test, the FastAPI app
wired to it, and a small seeded menu.
"""

import os
import tempfile
from datetime import time

# Configure before pos_api is imported; settings are cached on first use
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DATA_DIRECTORY"] = tempfile.mkdtemp(prefix="pos_api_test_")
os.environ["DEBUG"] = "false"

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from pos_api.database import Base, get_db
from pos_api.main import app
from pos_api.models import Staff, MealType, MenuItem, Inventory


class FakeExportTask:
    """Stands in for the Celery task; records what would have been queued."""

    def __init__(self):
        self.calls = []

    def delay(self, report):
        self.calls.append(report)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'pos.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def export_task(monkeypatch):
    task = FakeExportTask()
    monkeypatch.setattr("pos_api.main.export_z_report_to_excel", task)
    return task


@pytest.fixture
async def client(session_maker, export_task):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def seed(session_maker):
    """
    Menu used across tests.

    Meal types: 1 Bowl (1 entree, 1 side), 2 Plate (2 entrees, 1 side),
    3 Kids Meal (1 entree, 1 side, small drink), 4 Drink (a la carte).
    Menu items 1-7; Fried Rice (4) is out of stock, Breakfast Bowl (6)
    is only served 06:00-10:00 and Seasonal Greens (7) is switched off.
    """
    async with session_maker() as session:
        session.add_all([
            Staff(staff_id=1, username="kiosk", role="KIOSK"),
            Staff(staff_id=2, username="alice", role="CASHIER"),
            MealType(meal_type_id=1, meal_type_name="Bowl", meal_type_price=8.30,
                     entree_count=1, side_count=1, drink_size="none"),
            MealType(meal_type_id=2, meal_type_name="Plate", meal_type_price=9.80,
                     entree_count=2, side_count=1, drink_size="none"),
            MealType(meal_type_id=3, meal_type_name="Kids Meal", meal_type_price=6.60,
                     entree_count=1, side_count=1, drink_size="small"),
            MealType(meal_type_id=4, meal_type_name="Drink", meal_type_price=0.0,
                     entree_count=0, side_count=0, drink_size="medium"),
            MenuItem(menu_item_id=1, name="Orange Chicken", upcharge=0.0, item_type="entree",
                     allergens=["soy", "wheat"], allergen_info="Contains: soy, wheat"),
            MenuItem(menu_item_id=2, name="Honey Walnut Shrimp", upcharge=1.50, item_type="entree"),
            MenuItem(menu_item_id=3, name="Chow Mein", upcharge=0.0, item_type="side"),
            MenuItem(menu_item_id=4, name="Fried Rice", upcharge=0.0, item_type="side"),
            MenuItem(menu_item_id=5, name="Fountain Drink", upcharge=2.10, item_type="drink"),
            MenuItem(menu_item_id=6, name="Breakfast Bowl", upcharge=0.0, item_type="entree",
                     availability_start_time=time(6, 0), availability_end_time=time(10, 0)),
            MenuItem(menu_item_id=7, name="Seasonal Greens", upcharge=0.0, item_type="side",
                     is_available=False),
        ])
        await session.flush()
        session.add_all([
            Inventory(menu_item_id=1, stock=50, reorder=10, storage="freezer"),
            Inventory(menu_item_id=2, stock=20, reorder=5, storage="freezer"),
            Inventory(menu_item_id=3, stock=40, reorder=10, storage="dry"),
            Inventory(menu_item_id=4, stock=0, reorder=10, storage="dry"),
            Inventory(menu_item_id=5, stock=100, reorder=20, storage="dry"),
            Inventory(menu_item_id=6, stock=15, reorder=5, storage="fridge"),
        ])
        await session.commit()
