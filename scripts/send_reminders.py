"""Queue reminder emails for confirmed appointments starting soon.

Meant to run every few minutes from cron, followed by
``dispatch_notifications.py`` which actually sends the queued mail.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from bizbook import create_app
from bizbook.config import uses_memory_database
from bizbook.extensions import db
from bizbook.ledger import BookingLedger
from bizbook.notifications import NotificationOutbox, queue_due_reminders


def send_reminders(window_minutes: int | None = None) -> int:
    app = create_app()
    if uses_memory_database(app.config):
        app.logger.error("DATABASE_URL is an in-memory database; there are no bookings to remind")
        return 0
    with app.app_context():
        window = window_minutes or app.config["REMINDER_WINDOW_MINUTES"]
        ledger = BookingLedger(db.session, reminder_window_minutes=window)
        queued = queue_due_reminders(ledger, NotificationOutbox(db.session))
        app.logger.info("Queued %d appointment reminders (window %d minutes)", queued, window)
        print(f"Queued {queued} reminder(s)")
        return queued


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Queue reminders for upcoming appointments.")
    parser.add_argument(
        "--window",
        type=int,
        default=None,
        help="Look-ahead in minutes (default: REMINDER_WINDOW_MINUTES)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    send_reminders(args.window)


if __name__ == "__main__":
    main()
