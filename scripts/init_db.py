#!/usr/bin/env python3
"""Create the database tables for the database named by DATABASE_URL.

The default database is in-memory, so this only has a lasting effect when
DATABASE_URL points at a file or a server.
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bizbook import create_app
from bizbook.extensions import db


def init_database():
    app = create_app()
    with app.app_context():
        db.create_all()
        print(f"Database tables initialized at {app.config['SQLALCHEMY_DATABASE_URI']}")


if __name__ == "__main__":
    init_database()
