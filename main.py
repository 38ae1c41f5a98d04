"""
main.py
--------
Entry point for the Recurring-Bill Detection Engine.

Reads a transactions CSV, runs the detection pipeline, and writes the
detected bills to the outputs/ folder.

Usage (from the project root):
    python main.py --input path/to/transactions.csv

    # With optional arguments:
    python main.py --input transactions.csv --preset live
    python main.py --input transactions.csv --as-of 2025-06-30
    python main.py --input transactions.csv --exclusions exclusions.csv
    python main.py --input transactions.csv --run-monitor
"""

import sys
import os
import argparse
import logging
import pandas as pd
from datetime import datetime

# Ensure project root is on path (for runs from any working directory)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from pipeline import BillDetectionPipeline
from core.transactions import transactions_from_frame
from insights.bill_insights import calculate_monthly_total, get_bills_by_category, get_upcoming_bills
from insights.exclusions import BillExclusion, apply_exclusions
from monitoring.detection_monitor import DetectionMonitor
from config.config_loader import get_all_preset_names


# =============================================================================
# LOGGING SETUP
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("main")


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recurring-Bill Detection Engine: detect bills and subscriptions in transaction history."
    )
    parser.add_argument(
        "--input", type=str, required=True,
        help="Path to input transactions CSV (id, amount, description, date, merchant, ...)."
    )
    parser.add_argument(
        "--preset", type=str, default=None, choices=get_all_preset_names(),
        help="Detection preset. Defaults to the config's active_preset."
    )
    parser.add_argument(
        "--as-of", type=str, default=None,
        help="Reference date (YYYY-MM-DD) for status and due dates. Defaults to today."
    )
    parser.add_argument(
        "--exclusions", type=str, default=None,
        help="Optional CSV of user exclusions (merchant, amount, category, reason)."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Output directory. Defaults to outputs/ in project root."
    )
    parser.add_argument(
        "--run-monitor", action="store_true", default=False,
        help="Also run detection monitoring and output a monitor report."
    )
    return parser.parse_args()


# =============================================================================
# MAIN
# =============================================================================

def main():
    args = parse_args()

    output_dir = args.output_dir or os.path.join(PROJECT_ROOT, "outputs")
    os.makedirs(output_dir, exist_ok=True)
    as_of = datetime.strptime(args.as_of, "%Y-%m-%d").date() if args.as_of else None

    # --- Load transactions ---
    logger.info(f"Loading transactions from: {args.input}")
    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        sys.exit(1)

    transactions = transactions_from_frame(pd.read_csv(args.input))
    logger.info(f"Loaded {len(transactions):,} transactions.")

    # --- Run pipeline ---
    pipeline = BillDetectionPipeline(preset=args.preset)
    bills = pipeline.run(transactions, now=as_of)
    logger.info(f"Raw detections: {len(bills):,} bills detected.")

    # --- Apply user exclusions ---
    if args.exclusions:
        exclusions = _load_exclusions(args.exclusions)
        kept = apply_exclusions(bills, exclusions)
        logger.info(f"After exclusions: {len(kept):,} bills. Excluded: {len(bills) - len(kept):,}.")
        bills = kept

    # --- Output: Detected bills ---
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    bills_path = os.path.join(output_dir, f"bills_{timestamp}.csv")
    pipeline.to_frame(bills).to_csv(bills_path, index=False)
    logger.info(f"Bills saved to: {bills_path}")

    _print_summary(bills, as_of)

    # --- Optional: Monitoring ---
    if args.run_monitor:
        logger.info("Running detection monitor...")
        report = DetectionMonitor().run(bills, transactions)

        logger.info(f"Monitor Report: {report.summary}")
        for alert in report.alerts:
            level = {"CRITICAL": logging.ERROR, "WARNING": logging.WARNING}.get(alert.severity, logging.INFO)
            logger.log(level, f"[{alert.alert_type}] {alert.severity}: {alert.message}")

        if report.alerts:
            monitor_path = os.path.join(output_dir, f"monitor_report_{timestamp}.csv")
            pd.DataFrame([vars(a) for a in report.alerts]).to_csv(monitor_path, index=False)
            logger.info(f"Monitor report saved to: {monitor_path}")
        else:
            logger.info("No monitoring alerts.")


def _load_exclusions(path: str) -> list[BillExclusion]:
    df = pd.read_csv(path)
    exclusions = []
    for row in df.to_dict(orient="records"):
        exclusions.append(BillExclusion(
            merchant=str(row["merchant"]),
            amount=None if pd.isna(row.get("amount")) else float(row["amount"]),
            category=None if pd.isna(row.get("category")) else str(row["category"]),
            reason=None if pd.isna(row.get("reason")) else str(row["reason"]),
        ))
    logger.info(f"Loaded {len(exclusions):,} exclusions from: {path}")
    return exclusions


def _print_summary(bills, as_of) -> None:
    """Prints a clean summary table to the console."""
    if not bills:
        print("\n  No bills detected.\n")
        return

    print("\n" + "=" * 80)
    print("  RECURRING BILL DETECTION SUMMARY")
    print("=" * 80)

    print("\n  Bills by Category:")
    print("  " + "-" * 60)
    for category, group in sorted(get_bills_by_category(bills).items()):
        active = sum(1 for b in group if b.status == "active")
        print(f"    {category:20s}  {len(group):>5,} bills  (active: {active})")

    print("\n  Status Mix:")
    print("  " + "-" * 60)
    for status in ["active", "irregular", "cancelled"]:
        count = sum(1 for b in bills if b.status == status)
        pct = count / len(bills) * 100
        print(f"    {status:10s}  {count:>5,}  ({pct:.1f}%)")

    active_bills = [b for b in bills if b.status == "active"]
    print(f"\n  Estimated monthly total (active): {calculate_monthly_total(active_bills):,.2f}")

    upcoming = get_upcoming_bills(bills, now=as_of)
    print(f"  Due in the next 30 days: {len(upcoming):,}")
    for bill in upcoming[:10]:
        print(f"    {bill.next_due_date}  {bill.name:35s}  {bill.amount:>10,.2f}")
    print("=" * 80 + "\n")


if __name__ == "__main__":
    main()
