"""
Sales Reporting Service

Aggregate queries behind the manager's revenue pages and the register
reports:

- Daily revenue and summary statistics over a date range
- X report: mid-day snapshot, does not close the register
- Z report: end-of-day closing, recorded once per business day

Cancelled orders never count toward revenue. Orders without a status are
treated as pending and do count.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import select, func, distinct, or_, Date
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pos_api.core.config import get_settings
from pos_api.models import Order, Staff, DailySummary, OrderStatus, DaySummaryStatus

settings = get_settings()
logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30
RECENT_ORDER_LIMIT = 10

order_day = func.date(Order.datetime, type_=Date)


class DayAlreadyClosedError(Exception):
    """A Z report has already been generated for the business day."""


def _counts_toward_revenue():
    return or_(
        Order.order_status.is_(None),
        Order.order_status != OrderStatus.CANCELLED.value,
    )


def _tax(amount: float) -> float:
    return amount * settings.tax_rate


def _average(total: float, count: int) -> float:
    return total / count if count else 0.0


def _as_date(value: Any) -> date:
    """func.date() comes back as a date on PostgreSQL and may be text elsewhere."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


# =============================================================================
# REVENUE
# =============================================================================

async def daily_revenue(
    db: AsyncSession,
    day: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[dict[str, Any]]:
    """
    Revenue per business day, newest first.

    A single `day` wins over a range; with neither, the last 30 days are
    reported.
    """
    total_sales = func.coalesce(func.sum(Order.price), 0).label("total_sales")
    order_count = func.count(distinct(Order.order_id)).label("order_count")

    query = (
        select(order_day.label("date"), total_sales, order_count)
        .where(_counts_toward_revenue())
        .group_by(order_day)
        .order_by(order_day.desc())
    )
    if day is not None:
        query = query.where(order_day == day)
    elif start_date is not None and end_date is not None:
        query = query.where(order_day >= start_date, order_day <= end_date)
    else:
        query = query.where(order_day >= date.today() - timedelta(days=DEFAULT_WINDOW_DAYS))

    result = await db.execute(query)

    reports = []
    for row in result:
        sales = float(row.total_sales or 0)
        count = int(row.order_count or 0)
        tax = _tax(sales)
        reports.append({
            "date": _as_date(row.date),
            "total_sales": sales,
            "order_count": count,
            "average_order_value": _average(sales, count),
            "total_tax": tax,
            "net_sales": sales - tax,
        })
    return reports


async def revenue_summary(
    db: AsyncSession,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> dict[str, Any]:
    """Totals and averages over a range (default: last 30 days)."""
    query = select(
        func.coalesce(func.sum(Order.price), 0).label("total_revenue"),
        func.count(distinct(Order.order_id)).label("total_orders"),
        func.count(distinct(order_day)).label("days_count"),
    ).where(_counts_toward_revenue())

    if start_date is not None and end_date is not None:
        query = query.where(order_day >= start_date, order_day <= end_date)
    else:
        query = query.where(order_day >= date.today() - timedelta(days=DEFAULT_WINDOW_DAYS))

    row = (await db.execute(query)).one()
    revenue = float(row.total_revenue or 0)
    orders = int(row.total_orders or 0)
    days = int(row.days_count or 0)

    return {
        "total_revenue": revenue,
        "total_orders": orders,
        "days_count": days,
        "average_daily_revenue": _average(revenue, days),
        "average_order_value": _average(revenue, orders),
    }


async def orders_by_date(db: AsyncSession, day: date) -> list[dict[str, Any]]:
    result = await db.execute(
        select(
            Order.order_id,
            Order.datetime,
            Order.price,
            Order.order_status,
            Order.customer_name,
        )
        .where(order_day == day, _counts_toward_revenue())
        .order_by(Order.datetime.desc())
    )
    return [
        {
            "order_id": row.order_id,
            "datetime": row.datetime,
            "price": float(row.price or 0),
            "order_status": row.order_status or OrderStatus.PENDING.value,
            "customer_name": row.customer_name,
        }
        for row in result
    ]


# =============================================================================
# X / Z REPORTS
# =============================================================================

async def _report_summary(db: AsyncSession, day: date) -> dict[str, Any]:
    row = (await db.execute(
        select(
            func.coalesce(func.sum(Order.price), 0).label("total_sales"),
            func.count(distinct(Order.order_id)).label("order_count"),
            func.min(Order.datetime).label("first_transaction"),
            func.max(Order.datetime).label("last_transaction"),
        ).where(order_day == day, _counts_toward_revenue())
    )).one()

    sales = float(row.total_sales or 0)
    count = int(row.order_count or 0)
    tax = _tax(sales)
    return {
        "total_sales": sales,
        "order_count": count,
        "average_order_value": _average(sales, count),
        "total_tax": tax,
        "net_sales": sales - tax,
        "first_transaction": row.first_transaction,
        "last_transaction": row.last_transaction,
    }


async def _status_breakdown(db: AsyncSession, day: date) -> list[dict[str, Any]]:
    """Every order of the day by status, cancelled included."""
    result = await db.execute(
        select(
            Order.order_status,
            func.count().label("count"),
            func.coalesce(func.sum(Order.price), 0).label("total"),
        )
        .where(order_day == day)
        .group_by(Order.order_status)
    )

    # NULL and "pending" are reported together
    merged: dict[str, dict[str, Any]] = {}
    for row in result:
        status = row.order_status or OrderStatus.PENDING.value
        entry = merged.setdefault(status, {"status": status, "count": 0, "total": 0.0})
        entry["count"] += int(row.count)
        entry["total"] += float(row.total or 0)
    return [merged[key] for key in sorted(merged)]


async def _staff_breakdown(db: AsyncSession, day: date) -> list[dict[str, Any]]:
    total_sales = func.coalesce(func.sum(Order.price), 0).label("total_sales")
    result = await db.execute(
        select(
            Staff.staff_id,
            Staff.username,
            func.count(distinct(Order.order_id)).label("order_count"),
            total_sales,
        )
        .select_from(Order)
        .outerjoin(Staff, Order.staff_id == Staff.staff_id)
        .where(order_day == day, _counts_toward_revenue())
        .group_by(Staff.staff_id, Staff.username)
        .order_by(total_sales.desc())
    )
    return [
        {
            "staff_id": row.staff_id,
            "username": row.username or "Unknown",
            "order_count": int(row.order_count),
            "total_sales": float(row.total_sales or 0),
        }
        for row in result
    ]


async def _recent_orders(db: AsyncSession, day: date) -> list[dict[str, Any]]:
    result = await db.execute(
        select(
            Order.order_id,
            Order.datetime,
            Order.price,
            Order.order_status,
            Order.customer_name,
            Staff.username.label("staff_username"),
        )
        .outerjoin(Staff, Order.staff_id == Staff.staff_id)
        .where(order_day == day)
        .order_by(Order.datetime.desc(), Order.order_id.desc())
        .limit(RECENT_ORDER_LIMIT)
    )
    return [
        {
            "order_id": row.order_id,
            "datetime": row.datetime,
            "price": float(row.price or 0),
            "order_status": row.order_status or OrderStatus.PENDING.value,
            "customer_name": row.customer_name or "Guest",
            "staff_username": row.staff_username or "Unknown",
        }
        for row in result
    ]


async def x_report(db: AsyncSession, day: Optional[date] = None) -> dict[str, Any]:
    """Mid-day sales snapshot. Read-only; the register stays open."""
    day = day or date.today()
    return {
        "report_type": "X Report",
        "report_date": day,
        "report_time": datetime.now(timezone.utc),
        "is_closing_report": False,
        "summary": await _report_summary(db, day),
        "order_status_breakdown": await _status_breakdown(db, day),
        "staff_breakdown": await _staff_breakdown(db, day),
        "recent_orders": await _recent_orders(db, day),
    }


async def z_report(db: AsyncSession, day: Optional[date] = None) -> dict[str, Any]:
    """
    Close the business day.

    Computes the final totals and records them in `dailysummaries` as
    CLOSED within one transaction.

    Raises:
        DayAlreadyClosedError: The day was closed by an earlier or concurrent Z report
    """
    day = day or date.today()

    try:
        existing = await db.get(DailySummary, day, with_for_update=True)
        if existing is not None and (
            existing.closed_at is not None or existing.status == DaySummaryStatus.CLOSED.value
        ):
            raise DayAlreadyClosedError(
                f"Z Report already generated for {day.isoformat()}. Day is closed."
            )

        summary = await _report_summary(db, day)
        closed_at = datetime.now(timezone.utc)

        if existing is None:
            existing = DailySummary(business_date=day, opened_at=closed_at)
            db.add(existing)
        existing.total_sales = summary["total_sales"]
        existing.total_tax = summary["total_tax"]
        existing.net_sales = summary["net_sales"]
        existing.order_count = summary["order_count"]
        existing.status = DaySummaryStatus.CLOSED.value
        existing.closed_at = closed_at

        report = {
            "report_type": "Z Report",
            "report_date": day,
            "report_time": closed_at,
            "is_closing_report": True,
            "status": "closed",
            "summary": summary,
            "order_status_breakdown": await _status_breakdown(db, day),
            "staff_breakdown": await _staff_breakdown(db, day),
        }

        await db.commit()
    except IntegrityError as e:
        # Another Z report inserted the day first
        await db.rollback()
        raise DayAlreadyClosedError(
            f"Z Report already generated for {day.isoformat()}. Day is closed."
        ) from e
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Z report closed {day.isoformat()}: {summary['order_count']} orders, "
        f"${summary['total_sales']:.2f} sales"
    )
    return report


async def z_report_history(
    db: AsyncSession,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 30,
) -> list[DailySummary]:
    query = select(DailySummary).order_by(DailySummary.business_date.desc()).limit(limit)
    if start_date is not None:
        query = query.where(DailySummary.business_date >= start_date)
    if end_date is not None:
        query = query.where(DailySummary.business_date <= end_date)
    result = await db.execute(query)
    return list(result.scalars())
