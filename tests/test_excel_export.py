import pytest

from pos_api.celery_worker import celery_app
from pos_api.core.config import get_settings
from pos_api.services.excel_manager import ExcelManager
from pos_api.tasks import export_z_report_to_excel, clear_z_report_file, health_check, ExportFailed


@pytest.fixture(autouse=True)
def empty_workbook():
    ExcelManager.clear_all()
    yield
    ExcelManager.clear_all()


def z_report(day, sales, orders):
    return {
        "report_type": "Z Report",
        "report_date": day,
        "report_time": f"{day}T23:00:00+00:00",
        "is_closing_report": True,
        "status": "closed",
        "summary": {
            "total_sales": sales,
            "order_count": orders,
            "average_order_value": sales / orders,
            "total_tax": round(sales * 0.0825, 4),
            "net_sales": round(sales - sales * 0.0825, 4),
            "first_transaction": f"{day}T09:00:00",
            "last_transaction": f"{day}T21:00:00",
        },
        "order_status_breakdown": [
            {"status": "completed", "count": orders, "total": sales},
            {"status": "cancelled", "count": 2, "total": 12.0},
        ],
        "staff_breakdown": [
            {"staff_id": 2, "username": "alice", "order_count": orders, "total_sales": sales},
        ],
    }


def test_z_report_row_flattens_report():
    row = ExcelManager.z_report_row(z_report("2026-03-14", 400.0, 20))

    assert row["business_date"] == "2026-03-14"
    assert row["total_sales"] == 400.0
    assert row["cancelled_orders"] == 2
    assert row["top_staff"] == "alice"


def test_export_appends_rows():
    first = ExcelManager.export_z_report(z_report("2026-03-13", 300.0, 15))
    second = ExcelManager.export_z_report(z_report("2026-03-14", 400.0, 20))

    assert first["success"] and second["success"]
    rows = ExcelManager.get_all_z_reports()
    assert [r["order_count"] for r in rows] == [15, 20]
    assert rows[1]["top_staff"] == "alice"


def test_task_exports_report():
    result = export_z_report_to_excel(z_report("2026-03-14", 400.0, 20))

    assert result["success"] is True
    assert result["business_date"] == "2026-03-14"
    assert len(ExcelManager.get_all_z_reports()) == 1


def test_task_raises_for_retry_when_export_fails(monkeypatch):
    monkeypatch.setattr(
        ExcelManager,
        "export_z_report",
        classmethod(lambda cls, report: {"success": False, "message": "Lock timeout (30s)"}),
    )

    with pytest.raises(ExportFailed):
        export_z_report_to_excel(z_report("2026-03-14", 400.0, 20))


def unreadable_workbook(*args, **kwargs):
    raise PermissionError("workbook is open in another program")


def test_unreadable_workbook_is_not_overwritten(monkeypatch):
    ExcelManager.export_z_report(z_report("2026-03-12", 250.0, 10))
    ExcelManager.export_z_report(z_report("2026-03-13", 300.0, 15))
    monkeypatch.setattr("pos_api.services.excel_manager.pd.read_excel", unreadable_workbook)

    with pytest.raises(PermissionError):
        ExcelManager.export_z_report(z_report("2026-03-14", 400.0, 20))

    monkeypatch.undo()
    rows = ExcelManager.get_all_z_reports()
    assert [r["order_count"] for r in rows] == [10, 15]


def test_task_surfaces_read_errors_for_retry(monkeypatch):
    ExcelManager.export_z_report(z_report("2026-03-13", 300.0, 15))
    monkeypatch.setattr("pos_api.services.excel_manager.pd.read_excel", unreadable_workbook)

    with pytest.raises(PermissionError):
        export_z_report_to_excel(z_report("2026-03-14", 400.0, 20))

    monkeypatch.undo()
    assert len(ExcelManager.get_all_z_reports()) == 1


def test_exports_are_routed_to_the_report_queue():
    routes = celery_app.conf.task_routes

    assert export_z_report_to_excel.name == "pos_api.tasks.export_z_report_to_excel"
    assert routes[export_z_report_to_excel.name] == {"queue": get_settings().report_queue}
    assert routes[clear_z_report_file.name]["queue"] == "pos_reports"
    assert health_check.name not in routes
    assert celery_app.conf.task_default_queue == "pos_default"
