"""
Pydantic Schemas for Request/Response Validation

Request bodies follow the JSON the kiosk and cashier screens already send
(camelCase `mealType`, nested item objects carrying extra display fields),
responses use the `{success, data}` envelope.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Any
from datetime import datetime, date, time


# =============================================================================
# ORDER REQUEST SCHEMAS
# =============================================================================

class MealTypeRef(BaseModel):
    """Meal type as sent by the kiosk; only the id is trusted."""
    meal_type_id: int


class MenuItemRef(BaseModel):
    """Menu item as sent by the kiosk; only the id is trusted."""
    menu_item_id: int


class OrderItemCreate(BaseModel):
    """One meal in an order: a meal type plus its selections."""
    meal_type: MealTypeRef = Field(..., alias="mealType")
    entrees: List[MenuItemRef] = Field(default_factory=list)
    sides: List[MenuItemRef] = Field(default_factory=list)
    drink: Optional[MenuItemRef] = None

    class Config:
        populate_by_name = True


class OrderCreate(BaseModel):
    """Request schema for creating a new order."""
    order_items: List[OrderItemCreate] = Field(default=None, validate_default=True)
    staff_id: Optional[int] = Field(None, ge=1)
    customer_name: Optional[str] = Field(None, max_length=100)

    @field_validator("order_items", mode="before")
    @classmethod
    def require_items(cls, v: Any) -> Any:
        if not v or not isinstance(v, list):
            raise ValueError("Order items are required")
        return v


# =============================================================================
# ORDER RESPONSE SCHEMAS
# =============================================================================

class OrderCreateData(BaseModel):
    orderId: int
    price: float


class OrderCreateResponse(BaseModel):
    """Response after successfully creating an order."""
    success: bool = True
    data: OrderCreateData


class ActiveOrder(BaseModel):
    """Denormalised summary row for the active orders board."""
    order_id: int
    staff_id: Optional[int]
    staff_username: Optional[str]
    datetime: Optional[datetime]
    price: float
    order_status: str
    meal_count: int


class ActiveOrderListResponse(BaseModel):
    success: bool = True
    data: List[ActiveOrder]


class MealDetailResponse(BaseModel):
    detail_id: int
    menu_item_id: int
    meal_type_id: int
    role: str

    class Config:
        from_attributes = True


class MealResponse(BaseModel):
    meal_id: int
    meal_type_id: int
    details: List[MealDetailResponse]

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Response schema for a single order with its meals."""
    order_id: int
    price: float
    order_status: str
    staff_id: Optional[int]
    customer_name: Optional[str]
    datetime: Optional[datetime]
    meals: List[MealResponse]

    class Config:
        from_attributes = True

    @field_validator("price", mode="before")
    @classmethod
    def default_price(cls, v: Optional[float]) -> float:
        return v or 0.0

    @field_validator("order_status", mode="before")
    @classmethod
    def default_status(cls, v: Optional[str]) -> str:
        return v or "pending"


class OrderEnvelope(BaseModel):
    success: bool = True
    data: OrderResponse


# =============================================================================
# MENU SCHEMAS
# =============================================================================

class MealTypeResponse(BaseModel):
    meal_type_id: int
    meal_type_name: str
    meal_type_price: float
    entree_count: int
    side_count: int
    drink_size: str

    class Config:
        from_attributes = True


class MenuItemResponse(BaseModel):
    """Menu item, optionally enriched with inventory columns."""
    menu_item_id: int
    name: str
    upcharge: float
    is_available: bool
    item_type: str
    availability_start_time: Optional[time] = None
    availability_end_time: Optional[time] = None
    allergens: Optional[List[str]] = None
    allergen_info: Optional[str] = None
    stock: Optional[int] = None
    reorder: Optional[int] = None

    class Config:
        from_attributes = True


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _as_list(v: Any) -> Any:
    if v is None or isinstance(v, list):
        return v
    return [v]


class MenuItemCreate(BaseModel):
    """Request schema for adding a menu item together with its inventory."""
    menu_item_id: Optional[int] = Field(None, ge=1)
    name: str = Field(..., min_length=1, max_length=100)
    upcharge: float = Field(default=0.0, ge=0)
    is_available: bool = True
    item_type: str
    stock: int = Field(..., ge=0)
    reorder: int = Field(..., ge=0)
    storage: str = Field(..., min_length=1, max_length=50)
    availability_start_time: Optional[time] = None
    availability_end_time: Optional[time] = None
    allergens: Optional[List[str]] = None
    allergen_info: Optional[str] = None

    @field_validator("availability_start_time", "availability_end_time", mode="before")
    @classmethod
    def blank_time_is_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("allergens", mode="before")
    @classmethod
    def allergens_as_list(cls, v: Any) -> Any:
        return _as_list(v)


class MenuItemUpdate(BaseModel):
    """Partial update; only fields present in the body are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    upcharge: Optional[float] = Field(None, ge=0)
    is_available: Optional[bool] = None
    item_type: Optional[str] = None
    availability_start_time: Optional[time] = None
    availability_end_time: Optional[time] = None
    allergens: Optional[List[str]] = None
    allergen_info: Optional[str] = None

    @field_validator("availability_start_time", "availability_end_time", mode="before")
    @classmethod
    def blank_time_is_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("allergens", mode="before")
    @classmethod
    def allergens_as_list(cls, v: Any) -> Any:
        return _as_list(v)


class MenuItemMutationResponse(BaseModel):
    success: bool = True
    message: str
    data: MenuItemResponse


class StaffResponse(BaseModel):
    staff_id: int
    username: str
    role: str

    class Config:
        from_attributes = True


# =============================================================================
# REPORT SCHEMAS
# =============================================================================

class DailyRevenueReport(BaseModel):
    date: date
    total_sales: float
    order_count: int
    average_order_value: float
    total_tax: float
    net_sales: float


class DailyRevenueResponse(BaseModel):
    success: bool = True
    data: List[DailyRevenueReport]


class RevenueSummary(BaseModel):
    total_revenue: float = 0.0
    total_orders: int = 0
    days_count: int = 0
    average_daily_revenue: float = 0.0
    average_order_value: float = 0.0


class RevenueSummaryResponse(BaseModel):
    success: bool = True
    data: RevenueSummary


class OrderBreakdown(BaseModel):
    order_id: int
    datetime: Optional[datetime]
    price: float
    order_status: str
    customer_name: Optional[str]


class OrderBreakdownResponse(BaseModel):
    success: bool = True
    data: List[OrderBreakdown]


class ReportSummary(BaseModel):
    total_sales: float
    order_count: int
    average_order_value: float
    total_tax: float
    net_sales: float
    first_transaction: Optional[datetime] = None
    last_transaction: Optional[datetime] = None


class StatusBreakdown(BaseModel):
    status: str
    count: int
    total: float


class StaffBreakdown(BaseModel):
    staff_id: Optional[int]
    username: str
    order_count: int
    total_sales: float


class RecentOrder(BaseModel):
    order_id: int
    datetime: Optional[datetime]
    price: float
    order_status: str
    customer_name: str
    staff_username: str


class SalesReport(BaseModel):
    """Body shared by the X (mid-day) and Z (closing) reports."""
    report_type: str
    report_date: date
    report_time: datetime
    is_closing_report: bool
    status: Optional[str] = None
    summary: ReportSummary
    order_status_breakdown: List[StatusBreakdown]
    staff_breakdown: List[StaffBreakdown]
    recent_orders: List[RecentOrder] = Field(default_factory=list)


class SalesReportResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: SalesReport


class DailySummaryResponse(BaseModel):
    business_date: date
    total_sales: float
    total_tax: float
    net_sales: float
    order_count: int
    status: str
    opened_at: Optional[datetime]
    closed_at: Optional[datetime]

    class Config:
        from_attributes = True


class ZReportHistoryResponse(BaseModel):
    success: bool = True
    data: List[DailySummaryResponse]


# =============================================================================
# ANALYTICS SCHEMAS
# =============================================================================

class ProductUsageItem(BaseModel):
    menu_item_id: int
    name: str
    item_type: str
    count: int
    inventory_id: Optional[int] = None
    current_stock: Optional[int] = None


class ProductUsage(BaseModel):
    """Item usage over an inclusive date range, most used first."""
    startDate: date
    endDate: date
    totalItems: int
    uniqueItems: int
    usage: List[ProductUsageItem]


class ProductUsageResponse(BaseModel):
    success: bool = True
    data: ProductUsage


class BestSellingItem(BaseModel):
    menu_item_id: int
    name: str
    item_type: str
    upcharge: float
    role: str
    total_quantity_sold: int
    total_revenue: float
    average_price: float


class BestSellingResponse(BaseModel):
    success: bool = True
    data: List[BestSellingItem]


class CategorySales(BaseModel):
    category: str
    total_quantity_sold: int
    total_revenue: float
    item_count: int


class CategorySalesResponse(BaseModel):
    success: bool = True
    data: List[CategorySales]


# =============================================================================
# INVENTORY SCHEMAS
# =============================================================================

class InventoryItemResponse(BaseModel):
    """Inventory row with the name and type of the menu item it stocks."""
    inventory_id: int
    menu_item_id: int
    name: str
    item_type: str
    stock: int
    reorder: int
    storage: str


class InventoryListResponse(BaseModel):
    success: bool = True
    data: List[InventoryItemResponse]


class InventoryUpdate(BaseModel):
    """Partial update; only fields present in the body are applied."""
    stock: Optional[int] = Field(None, ge=0)
    reorder: Optional[int] = Field(None, ge=0)
    storage: Optional[str] = Field(None, min_length=1, max_length=50)


class InventoryMutationResponse(BaseModel):
    success: bool = True
    message: str
    data: InventoryItemResponse


# =============================================================================
# COMMON
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    timestamp: datetime
