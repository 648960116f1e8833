from datetime import date, datetime

import asyncio

import pytest

from pos_api.models import Order, DailySummary
from pos_api.services import reports as report_service

BUSINESS_DAY = "2026-03-14"


@pytest.fixture
async def sales(session_maker, seed):
    """
    2026-03-14: 10.00 completed, 20.00 pending, 5.00 cancelled (alice/kiosk)
    and 15.00 with no status and no staff. 2026-03-13: one 100.00 order.
    """
    async with session_maker() as session:
        session.add_all([
            Order(order_id=1, price=10.0, order_status="completed", staff_id=1,
                  customer_name="Ann", datetime=datetime(2026, 3, 14, 9, 0)),
            Order(order_id=2, price=20.0, order_status="pending", staff_id=2,
                  datetime=datetime(2026, 3, 14, 12, 0)),
            Order(order_id=3, price=5.0, order_status="cancelled", staff_id=2,
                  datetime=datetime(2026, 3, 14, 13, 0)),
            Order(order_id=4, price=15.0, datetime=datetime(2026, 3, 14, 14, 0)),
            Order(order_id=5, price=100.0, order_status="completed", staff_id=1,
                  datetime=datetime(2026, 3, 13, 18, 0)),
        ])
        await session.commit()


# =============================================================================
# REVENUE
# =============================================================================

async def test_daily_revenue_for_one_day(client, sales):
    response = await client.get("/api/revenue/daily", params={"date": BUSINESS_DAY})

    assert response.status_code == 200
    [day] = response.json()["data"]
    assert day["date"] == BUSINESS_DAY
    assert day["total_sales"] == pytest.approx(45.0)
    assert day["order_count"] == 3
    assert day["average_order_value"] == pytest.approx(15.0)
    assert day["total_tax"] == pytest.approx(45.0 * 0.0825)
    assert day["net_sales"] == pytest.approx(45.0 - 45.0 * 0.0825)


async def test_daily_revenue_for_range_is_newest_first(client, sales):
    response = await client.get(
        "/api/revenue/daily",
        params={"start_date": "2026-03-13", "end_date": BUSINESS_DAY},
    )

    days = response.json()["data"]
    assert [d["date"] for d in days] == [BUSINESS_DAY, "2026-03-13"]
    assert days[1]["total_sales"] == pytest.approx(100.0)


async def test_daily_revenue_rejects_bad_date(client, sales):
    response = await client.get("/api/revenue/daily", params={"date": "14/03/2026"})

    assert response.status_code == 400


async def test_revenue_summary(client, sales):
    response = await client.get(
        "/api/revenue/summary",
        params={"start_date": "2026-03-01", "end_date": "2026-03-31"},
    )

    summary = response.json()["data"]
    assert summary["total_revenue"] == pytest.approx(145.0)
    assert summary["total_orders"] == 4
    assert summary["days_count"] == 2
    assert summary["average_daily_revenue"] == pytest.approx(72.5)
    assert summary["average_order_value"] == pytest.approx(36.25)


async def test_revenue_summary_with_no_orders(client, seed):
    response = await client.get("/api/revenue/summary")

    assert response.json()["data"] == {
        "total_revenue": 0.0,
        "total_orders": 0,
        "days_count": 0,
        "average_daily_revenue": 0.0,
        "average_order_value": 0.0,
    }


async def test_orders_by_date_skip_cancelled(client, sales):
    response = await client.get(f"/api/revenue/orders/{BUSINESS_DAY}")

    orders = response.json()["data"]
    assert [o["order_id"] for o in orders] == [4, 2, 1]
    assert orders[0]["order_status"] == "pending"


# =============================================================================
# X REPORT
# =============================================================================

async def test_x_report(client, sales):
    response = await client.get("/api/reports/x-report", params={"date": BUSINESS_DAY})

    assert response.status_code == 200
    report = response.json()["data"]
    assert report["report_type"] == "X Report"
    assert report["is_closing_report"] is False
    assert report["summary"]["total_sales"] == pytest.approx(45.0)
    assert report["summary"]["order_count"] == 3

    statuses = {s["status"]: s for s in report["order_status_breakdown"]}
    assert statuses["cancelled"]["count"] == 1
    assert statuses["completed"]["total"] == pytest.approx(10.0)
    assert statuses["pending"]["count"] == 2
    assert statuses["pending"]["total"] == pytest.approx(35.0)

    staff = report["staff_breakdown"]
    assert [s["username"] for s in staff] == ["alice", "Unknown", "kiosk"]
    assert staff[0]["order_count"] == 1

    recent = report["recent_orders"]
    assert [o["order_id"] for o in recent] == [4, 3, 2, 1]
    assert recent[0]["customer_name"] == "Guest"
    assert recent[0]["staff_username"] == "Unknown"


async def test_x_report_does_not_close_the_day(client, sales, db):
    await client.get("/api/reports/x-report", params={"date": BUSINESS_DAY})

    assert await db.get(DailySummary, date(2026, 3, 14)) is None


# =============================================================================
# Z REPORT
# =============================================================================

async def test_z_report_closes_day_and_queues_export(client, sales, export_task, db):
    response = await client.post("/api/reports/z-report", params={"date": BUSINESS_DAY})

    assert response.status_code == 200
    body = response.json()
    assert body["message"].startswith("Day closed successfully")
    assert body["data"]["report_type"] == "Z Report"
    assert body["data"]["is_closing_report"] is True
    assert body["data"]["status"] == "closed"

    summary = await db.get(DailySummary, date(2026, 3, 14))
    assert summary.status == "CLOSED"
    assert summary.total_sales == pytest.approx(45.0)
    assert summary.order_count == 3
    assert summary.closed_at is not None

    [queued] = export_task.calls
    assert queued["report_date"] == BUSINESS_DAY
    assert queued["summary"]["order_count"] == 3


async def test_z_report_only_once_per_day(client, sales, export_task):
    first = await client.post("/api/reports/z-report", params={"date": BUSINESS_DAY})
    second = await client.post("/api/reports/z-report", params={"date": BUSINESS_DAY})

    assert first.status_code == 200
    assert second.status_code == 400
    assert "already generated" in second.json()["error"]
    assert len(export_task.calls) == 1


async def test_z_report_history(client, sales):
    await client.post("/api/reports/z-report", params={"date": "2026-03-13"})
    await client.post("/api/reports/z-report", params={"date": BUSINESS_DAY})

    response = await client.get("/api/reports/z-report/history")

    history = response.json()["data"]
    assert [h["business_date"] for h in history] == [BUSINESS_DAY, "2026-03-13"]
    assert history[1]["total_sales"] == pytest.approx(100.0)

    ranged = await client.get(
        "/api/reports/z-report/history",
        params={"start_date": BUSINESS_DAY},
    )
    assert len(ranged.json()["data"]) == 1


async def test_z_report_service_raises_when_closed(db, sales):
    await report_service.z_report(db, date(2026, 3, 13))

    with pytest.raises(report_service.DayAlreadyClosedError):
        await report_service.z_report(db, date(2026, 3, 13))


async def test_z_report_losing_insert_race_is_already_closed(session_maker, sales):
    async with session_maker() as first:
        await report_service.z_report(first, date(2026, 3, 13))

    async with session_maker() as late:
        async def stale_get(*args, **kwargs):
            # Read taken before the other report committed
            return None

        late.get = stale_get
        with pytest.raises(report_service.DayAlreadyClosedError):
            await report_service.z_report(late, date(2026, 3, 13))

    async with session_maker() as check:
        summary = await check.get(DailySummary, date(2026, 3, 13))
        assert summary.total_sales == pytest.approx(100.0)


async def test_concurrent_z_reports_close_the_day_once(client, sales, export_task):
    responses = await asyncio.gather(
        client.post("/api/reports/z-report", params={"date": BUSINESS_DAY}),
        client.post("/api/reports/z-report", params={"date": BUSINESS_DAY}),
    )

    assert sorted(r.status_code for r in responses) == [200, 400]
    [rejected] = [r for r in responses if r.status_code == 400]
    assert "already generated" in rejected.json()["error"]
    assert len(export_task.calls) == 1
