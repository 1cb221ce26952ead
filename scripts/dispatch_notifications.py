"""Send pending outbox notifications, retrying failures with backoff."""
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
from bizbook.notifications import NotificationDispatcher


def dispatch(limit: int | None = None) -> dict[str, int]:
    app = create_app()
    if uses_memory_database(app.config):
        app.logger.error("DATABASE_URL is an in-memory database; the web process outbox is not visible here")
        return {"sent": 0, "retrying": 0, "failed": 0}
    with app.app_context():
        dispatcher = NotificationDispatcher.from_config(db.session, app.config)
        summary = dispatcher.dispatch_pending(limit=limit)
        print(f"Sent {summary['sent']}, retrying {summary['retrying']}, failed {summary['failed']}")
        return summary


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dispatch queued email notifications.")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of notifications to send")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    dispatch(args.limit)


if __name__ == "__main__":
    main()
