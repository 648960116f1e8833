"""
Excel File Manager with Concurrency Control

Appends closed Z reports to a workbook the managers keep for the
accountant. Writes are serialised with a file lock so several Celery
workers can export at once.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from filelock import FileLock, Timeout

from pos_api.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

DATA_DIR = Path(settings.data_directory)
Z_REPORTS_FILE = DATA_DIR / settings.z_report_filename
Z_REPORTS_LOCK = DATA_DIR / f"{settings.z_report_filename}.lock"


class ExcelManager:
    """Thread-safe Excel file manager."""

    LOCK_TIMEOUT = settings.excel_lock_timeout

    Z_REPORT_COLUMNS = [
        "business_date",
        "closed_at",
        "total_sales",
        "order_count",
        "average_order_value",
        "total_tax",
        "net_sales",
        "first_transaction",
        "last_transaction",
        "cancelled_orders",
        "top_staff",
        "exported_at",
    ]

    @classmethod
    def _ensure_data_dir(cls) -> None:
        """Create data directory if needed."""
        if not DATA_DIR.exists():
            DATA_DIR.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {DATA_DIR}")

    @classmethod
    def _load_or_create_df(cls, file_path: Path, columns: list) -> pd.DataFrame:
        """
        Load existing file or create new DataFrame.

        A workbook that exists but cannot be read is an error; writing an
        empty frame over it would drop every earlier row.
        """
        if file_path.exists():
            try:
                return pd.read_excel(file_path, engine="openpyxl")
            except Exception as e:
                logger.error(f"Error reading {file_path}: {e}")
                raise
        return pd.DataFrame(columns=columns)

    @staticmethod
    def z_report_row(report: dict[str, Any]) -> dict[str, Any]:
        """Flatten a Z report into one spreadsheet row."""
        summary = report.get("summary", {})
        cancelled = sum(
            entry.get("count", 0)
            for entry in report.get("order_status_breakdown", [])
            if entry.get("status") == "cancelled"
        )
        staff = report.get("staff_breakdown") or []
        return {
            "business_date": report.get("report_date"),
            "closed_at": report.get("report_time"),
            "total_sales": summary.get("total_sales", 0),
            "order_count": summary.get("order_count", 0),
            "average_order_value": summary.get("average_order_value", 0),
            "total_tax": summary.get("total_tax", 0),
            "net_sales": summary.get("net_sales", 0),
            "first_transaction": summary.get("first_transaction"),
            "last_transaction": summary.get("last_transaction"),
            "cancelled_orders": cancelled,
            "top_staff": staff[0].get("username") if staff else None,
        }

    @classmethod
    def export_z_report(cls, report: dict[str, Any]) -> dict[str, Any]:
        """Append a Z report to the workbook with file locking."""
        cls._ensure_data_dir()

        business_date = report.get("report_date", "unknown")
        result = {
            "success": False,
            "message": "",
            "business_date": business_date,
            "exported_at": None,
        }

        try:
            lock = FileLock(str(Z_REPORTS_LOCK), timeout=cls.LOCK_TIMEOUT)

            with lock:
                logger.debug(f"Lock acquired for Z report {business_date}")

                df = cls._load_or_create_df(Z_REPORTS_FILE, cls.Z_REPORT_COLUMNS)

                export_time = datetime.now().isoformat()
                new_row = cls.z_report_row(report)
                new_row["exported_at"] = export_time

                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(Z_REPORTS_FILE), index=False, engine="openpyxl")

                logger.info(f"Z report {business_date} exported to Excel")

                result["success"] = True
                result["message"] = f"Z report {business_date} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for Z report {business_date}")

        except Timeout:
            result["message"] = f"Lock timeout ({cls.LOCK_TIMEOUT}s)"
            logger.error(f"Lock timeout for Z report {business_date}")

        return result

    @classmethod
    def get_all_z_reports(cls) -> list[dict[str, Any]]:
        """Get every exported Z report row."""
        cls._ensure_data_dir()

        if not Z_REPORTS_FILE.exists():
            return []

        try:
            df = pd.read_excel(Z_REPORTS_FILE, engine="openpyxl")
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading Z reports: {e}")
            return []

    @classmethod
    def clear_all(cls) -> bool:
        """Delete the workbook and its lock file."""
        try:
            for f in [Z_REPORTS_FILE, Z_REPORTS_LOCK]:
                if f.exists():
                    f.unlink()
            logger.info("Z report workbook cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing files: {e}")
            return False
