"""
Celery Tasks
Background jobs for the register: exporting closed Z reports.
"""

import logging
import time
from datetime import datetime

from pos_api.celery_worker import celery_app
from pos_api.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)


class ExportFailed(Exception):
    """Export did not complete; raised so Celery retries it."""


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(ExportFailed, OSError),
    retry_backoff=True
)
def export_z_report_to_excel(self, report: dict) -> dict:
    """
    Append a closed Z report to the Excel workbook.

    Args:
        report: JSON-serialised Z report as returned by the API

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    business_date = report.get('report_date', 'unknown')

    logger.info(f"Task {task_id}: exporting Z report {business_date}")
    start_time = time.time()

    result = ExcelManager.export_z_report(report)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if not result['success']:
        logger.warning(f"Task {task_id}: Z report {business_date} failed - {result['message']}")
        raise ExportFailed(result['message'])

    logger.info(f"Task {task_id}: Z report {business_date} exported in {elapsed}s")
    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }


@celery_app.task
def clear_z_report_file() -> dict:
    """
    Remove the Z report workbook (for testing/reset purposes).
    """
    success = ExcelManager.clear_all()
    return {
        'success': success,
        'message': 'Z report workbook cleared' if success else 'Failed to clear Z report workbook',
        'timestamp': datetime.now().isoformat()
    }
