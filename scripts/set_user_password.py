"""Reset the password of a business owner account."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure the project root is on sys.path so ``bizbook`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from bizbook import create_app
from bizbook.extensions import db
from bizbook.models import AuthAccount, User
from bizbook.schemas import MIN_PASSWORD_LENGTH


def set_password(email: str, password: str) -> bool:
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"Error: password must be at least {MIN_PASSWORD_LENGTH} characters long")
        return False

    app = create_app()
    with app.app_context():
        user = User.query.filter_by(email=email.strip().lower(), is_active=True).first()
        if user is None:
            print(f"Error: no active account found for {email}")
            return False

        account = AuthAccount.query.filter_by(user_id=user.user_id).first()
        if account is None:
            account = AuthAccount(user_id=user.user_id)
            db.session.add(account)
            print(f"Created auth account for user: {email}")

        account.password_hash = generate_password_hash(password, method=app.config["PASSWORD_HASH_METHOD"])
        db.session.commit()

        print(f"Password for '{email}' ({user.business_name}) has been set successfully.")
    return True


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set a business owner's password.")
    parser.add_argument("email", help="Account email address")
    parser.add_argument("password", help="Plain-text password to hash and store")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if not set_password(args.email, args.password):
        sys.exit(1)


if __name__ == "__main__":
    main()
