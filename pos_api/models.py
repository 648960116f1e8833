"""
SQLAlchemy Database Models

Point-of-sale schema:
- Staff members and the orders credited to them
- Meal types (combos) and menu items with their inventory
- Orders, the meals inside them and each meal's entree/side lines
- Daily summaries written when a day is closed with a Z report

Every primary key is generated by the database.
"""

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    Date,
    Time,
    Text,
    Boolean,
    JSON,
    ForeignKey,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pos_api.database import Base


class OrderStatus(str, enum.Enum):
    """Order status workflow. Stored as free text on the order row."""
    PENDING = "pending"
    PROCESSING = "processing"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ItemType(str, enum.Enum):
    """Menu item categories."""
    ENTREE = "entree"
    SIDE = "side"
    DRINK = "drink"


class DetailRole(str, enum.Enum):
    """Role of a line inside a meal. Drinks are not stored as details."""
    ENTREE = "entree"
    SIDE = "side"


class DaySummaryStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class Staff(Base):
    """Cashiers and managers."""
    __tablename__ = "staff"

    staff_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=False, unique=True)
    role = Column(String(20), nullable=False, default="CASHIER")

    orders = relationship("Order", back_populates="staff")

    def __repr__(self):
        return f"<Staff #{self.staff_id} - {self.username} ({self.role})>"


class MealType(Base):
    """
    A combo definition: base price plus how many entrees and sides it holds
    and which drink size comes with it ("none" when no drink is included).
    """
    __tablename__ = "meal_types"

    meal_type_id = Column(Integer, primary_key=True, autoincrement=True)
    meal_type_name = Column(String(100), nullable=False)
    meal_type_price = Column(Float, nullable=False, default=0.0)
    entree_count = Column(Integer, nullable=False, default=0)
    side_count = Column(Integer, nullable=False, default=0)
    drink_size = Column(String(20), nullable=False, default="none")

    def __repr__(self):
        return f"<MealType #{self.meal_type_id} - {self.meal_type_name}>"


class MenuItem(Base):
    """Sellable entree, side or drink with its upcharge over the meal price."""
    __tablename__ = "menu_items"

    menu_item_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    upcharge = Column(Float, nullable=False, default=0.0)
    is_available = Column(Boolean, nullable=False, default=True)
    item_type = Column(String(20), nullable=False, index=True)

    # Optional daily window, may cross midnight (22:00 -> 02:00)
    availability_start_time = Column(Time, nullable=True)
    availability_end_time = Column(Time, nullable=True)

    allergens = Column(JSON, nullable=True)
    allergen_info = Column(Text, nullable=True)

    inventory = relationship(
        "Inventory",
        back_populates="menu_item",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<MenuItem #{self.menu_item_id} - {self.name} ({self.item_type})>"


class Inventory(Base):
    """Stock level for a menu item."""
    __tablename__ = "inventory"

    inventory_id = Column(Integer, primary_key=True, autoincrement=True)
    menu_item_id = Column(
        Integer,
        ForeignKey("menu_items.menu_item_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    stock = Column(Integer, nullable=False, default=0)
    reorder = Column(Integer, nullable=False, default=0)
    storage = Column(String(50), nullable=False)

    menu_item = relationship("MenuItem", back_populates="inventory")


class Order(Base):
    """
    Customer transaction.

    `order_status` is free text; NULL is read back as "pending".
    """
    __tablename__ = "Order"

    order_id = Column(Integer, primary_key=True, autoincrement=True)
    price = Column(Float, nullable=True, default=0.0)
    order_status = Column(String(20), nullable=True, default=OrderStatus.PENDING.value, index=True)
    staff_id = Column(Integer, ForeignKey("staff.staff_id"), nullable=True)
    customer_name = Column(String(100), nullable=True)
    datetime = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    staff = relationship("Staff", back_populates="orders")
    meals = relationship(
        "Meal",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="Meal.meal_id",
    )

    def __repr__(self):
        return f"<Order #{self.order_id} - {self.order_status} - {self.price}>"


class Meal(Base):
    """One meal-type selection inside an order."""
    __tablename__ = "meal"

    meal_id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("Order.order_id", ondelete="CASCADE"), nullable=False, index=True)
    meal_type_id = Column(Integer, ForeignKey("meal_types.meal_type_id"), nullable=False)

    order = relationship("Order", back_populates="meals")
    meal_type = relationship("MealType")
    details = relationship(
        "MealDetail",
        back_populates="meal",
        cascade="all, delete-orphan",
        order_by="MealDetail.detail_id",
    )


class MealDetail(Base):
    """Entree or side line item attached to a meal."""
    __tablename__ = "meal_detail"

    detail_id = Column(Integer, primary_key=True, autoincrement=True)
    meal_id = Column(Integer, ForeignKey("meal.meal_id", ondelete="CASCADE"), nullable=False, index=True)
    meal_type_id = Column(Integer, nullable=False)  # copy of meal.meal_type_id
    menu_item_id = Column(Integer, ForeignKey("menu_items.menu_item_id"), nullable=False)
    role = Column(String(10), nullable=False)

    meal = relationship("Meal", back_populates="details")


class DailySummary(Base):
    """
    Closing totals for a business day, written by the Z report.
    A CLOSED row means the day can no longer be closed again.
    """
    __tablename__ = "dailysummaries"

    business_date = Column(Date, primary_key=True)
    total_sales = Column(Float, nullable=False, default=0.0)
    total_tax = Column(Float, nullable=False, default=0.0)
    net_sales = Column(Float, nullable=False, default=0.0)
    order_count = Column(Integer, nullable=False, default=0)
    status = Column(String(10), nullable=False, default=DaySummaryStatus.OPEN.value)
    opened_at = Column(DateTime(timezone=True), server_default=func.now())
    closed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<DailySummary {self.business_date} - {self.status}>"
