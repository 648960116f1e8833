"""
Z Report Workbook Verification

Checks the exported Z report workbook: one row per business day, no
duplicated days, and totals that add up (net = sales - tax).
Run from project root: python scripts/verify.py
"""

import sys
import os

import pandas as pd

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pos_api.services.excel_manager import ExcelManager, Z_REPORTS_FILE

TOLERANCE = 0.01


def verify_z_reports() -> bool:
    print("=" * 70)
    print("Z REPORT WORKBOOK VERIFICATION")
    print("=" * 70)
    print(f"File: {Z_REPORTS_FILE}")

    rows = ExcelManager.get_all_z_reports()
    if not rows:
        print("\nNo Z reports exported yet.")
        return True

    df = pd.DataFrame(rows)
    ok = True

    missing = [c for c in ExcelManager.Z_REPORT_COLUMNS if c not in df.columns]
    if missing:
        print(f"\nMissing columns: {missing}")
        ok = False

    duplicated = df[df.duplicated("business_date", keep=False)]
    if not duplicated.empty:
        print(f"\nBusiness days closed more than once: {sorted(duplicated['business_date'].astype(str).unique())}")
        ok = False

    mismatch = df[(df["total_sales"] - df["total_tax"] - df["net_sales"]).abs() > TOLERANCE]
    if not mismatch.empty:
        print(f"\nRows where net sales != sales - tax: {mismatch['business_date'].astype(str).tolist()}")
        ok = False

    print(f"\nDays exported: {len(df)}")
    print(f"Total sales: ${df['total_sales'].sum():.2f}")
    print(f"Total orders: {int(df['order_count'].sum())}")
    print("\n" + ("Workbook OK" if ok else "Workbook has problems"))
    print("=" * 70)
    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_z_reports() else 1)
