"""
Run one auto-verification sweep against the configured MongoDB and print the report.

    python -m scripts.run_auto_verification [--dry-run-email] [--min-reviews N] [--min-age-days N]
"""

import argparse
import sys

from src.catalog.config import load_app_config
from src.catalog.data.mongo import connect, get_database
from src.catalog.jobs.auto_verification import run_auto_verification
from src.catalog.notifications.email import LogOnlyNotifier, build_notifier


def main() -> None:
    config = load_app_config()

    parser = argparse.ArgumentParser(description="Promote active users to verified status")
    parser.add_argument(
        "--dry-run-email",
        action="store_true",
        help="Log notifications instead of sending them over SMTP.",
    )
    parser.add_argument(
        "--min-reviews",
        type=int,
        default=config.jobs.min_review_count,
        help=f"Reviews required (default: {config.jobs.min_review_count}).",
    )
    parser.add_argument(
        "--min-age-days",
        type=int,
        default=config.jobs.min_account_age_days,
        help=f"Account age in days required (default: {config.jobs.min_account_age_days}).",
    )
    args = parser.parse_args()

    notifier = LogOnlyNotifier() if args.dry_run_email else build_notifier(config.mail)

    client = connect(config.mongo)
    try:
        report = run_auto_verification(
            get_database(client, config.mongo),
            notifier,
            min_account_age_days=args.min_age_days,
            min_review_count=args.min_reviews,
        )
    finally:
        client.close()

    print(
        f"Auto-verification finished: candidates={report.candidates} "
        f"verified={report.verified_count} "
        f"notification_failures={len(report.notification_failures)}"
    )
    for result in report.verified:
        status = "notified" if result.notified else f"NOT notified ({result.notification_error})"
        print(f"  - {result.username} ({result.user_id}): {result.review_count} reviews, {status}")

    if report.notification_failures:
        sys.exit(2)


if __name__ == "__main__":
    main()
