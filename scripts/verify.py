"""
Ledger Verification Script

Checks the Excel order ledger written by the Celery worker.
Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd
from filelock import Timeout

from tableorder.core.config import get_settings
from tableorder.services.ledger import LEDGER_COLUMNS, OrderLedger


def verify_ledger() -> bool:
    """Verify the ledger file after a simulation run."""
    settings = get_settings()
    ledger = OrderLedger()
    ledger_file = ledger.path

    print("=" * 60)
    print("LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"File: {ledger_file}")
    print("=" * 60)

    if not ledger_file.exists():
        print("\nLedger file not found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    try:
        df = pd.DataFrame(ledger.read_all())
    except Timeout:
        print(f"\nLedger is locked by a writer (waited {ledger.lock_timeout}s), try again")
        return False
    except (OSError, ValueError) as e:
        print(f"\nCould not read ledger file: {e}")
        return False

    print("\nSTATISTICS:")
    print(f"   Total Orders: {len(df)}")
    print(f"   Columns: {len(df.columns)}")

    missing = [col for col in LEDGER_COLUMNS if col not in df.columns]
    if missing:
        print(f"\nMissing Columns: {missing}")
    else:
        print("\nAll ledger columns present")

    duplicates = int(df["order_id"].duplicated().sum()) if "order_id" in df.columns else 0
    if duplicates:
        print(f"\n{duplicates} duplicate order IDs found!")
    else:
        print("No duplicate order IDs")

    if "total" in df.columns and len(df):
        print("\nREVENUE:")
        print(f"   Total: {settings.currency_symbol}{df['total'].sum():.2f}")
        print(f"   Average: {settings.currency_symbol}{df['total'].mean():.2f}")

    if "table_number" in df.columns and len(df):
        busiest = df["table_number"].value_counts().head(3)
        print("\nBUSIEST TABLES:")
        for table, count in busiest.items():
            print(f"   Table {table}: {count} orders")

    print("\nRECENT ORDERS:")
    print("-" * 60)
    if len(df):
        cols = [c for c in ["order_id", "table_number", "items", "total"] if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("VERIFICATION COMPLETE")
    print("=" * 60)

    return not missing and not duplicates


if __name__ == "__main__":
    sys.exit(0 if verify_ledger() else 1)
