"""User store: business owner accounts, credentials and session tokens."""
from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import DuplicateAccount, IncorrectPassword, InvalidCredentials, InvalidToken, NotFound, ValidationError
from .models import AuthAccount, User
from .schemas import MIN_PASSWORD_LENGTH, ProfileUpdate, Registration, SettingsUpdate

logger = logging.getLogger(__name__)

TOKEN_SALT = "auth-token"

DEFAULT_SETTINGS: dict[str, dict] = {
    "working_hours": {
        "monday": {"start": "09:00", "end": "17:00", "is_open": True},
        "tuesday": {"start": "09:00", "end": "17:00", "is_open": True},
        "wednesday": {"start": "09:00", "end": "17:00", "is_open": True},
        "thursday": {"start": "09:00", "end": "17:00", "is_open": True},
        "friday": {"start": "09:00", "end": "17:00", "is_open": True},
        "saturday": {"start": "09:00", "end": "15:00", "is_open": True},
        "sunday": {"start": "09:00", "end": "15:00", "is_open": False},
    },
    "notification_settings": {
        "email_notifications": True,
        "sms_notifications": False,
        "reminder_time": 60,  # minutes before the appointment
    },
    "branding": {
        "logo": None,
        "primary_color": "#3B82F6",
        "secondary_color": "#1E40AF",
    },
}


def default_settings() -> dict[str, dict]:
    return copy.deepcopy(DEFAULT_SETTINGS)


class UserStore:
    """Accounts live in the ``users`` table; hashes live in ``auth_accounts``.

    Every method that returns an account returns the ``User`` model, whose
    ``to_dict`` never exposes the password hash.
    """

    def __init__(
        self,
        session,
        secret_key: str,
        token_max_age: int = 7 * 24 * 60 * 60,
        hash_method: str = "scrypt",
    ) -> None:
        self.session = session
        self.token_max_age = token_max_age
        self.hash_method = hash_method
        self._serializer = URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)

    # --- lookups -------------------------------------------------------

    def _active_by_email(self, email: str) -> User | None:
        return (
            self.session.query(User)
            .filter(User.email == email.strip().lower(), User.is_active.is_(True))
            .first()
        )

    def get(self, user_id: str) -> User:
        user = self.session.get(User, user_id)
        if user is None or not user.is_active:
            raise NotFound("User not found")
        return user

    # --- registration and login ----------------------------------------

    def register(self, registration: Registration) -> User:
        if self._active_by_email(registration.email):
            raise DuplicateAccount("User with this email already exists")

        user = User(
            email=registration.email,
            business_name=registration.business_name,
            owner_name=registration.owner_name,
            phone=registration.phone,
            business_type=registration.business_type,
            address=registration.address,
            role="business_owner",
            is_active=True,
            settings=default_settings(),
        )
        self.session.add(user)
        self.session.flush()  # Get the new user_id before creating the AuthAccount

        self.session.add(
            AuthAccount(
                user_id=user.user_id,
                password_hash=generate_password_hash(registration.password, method=self.hash_method),
            )
        )
        self.session.commit()
        logger.info("Registered business %s (%s)", user.user_id, user.email)
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self._active_by_email(email or "")
        # Same error either way so callers cannot tell which emails exist.
        if user is None or user.auth_account is None:
            raise InvalidCredentials()
        if not check_password_hash(user.auth_account.password_hash, password or ""):
            raise InvalidCredentials()

        user.auth_account.last_login_at = datetime.now(timezone.utc)
        self.session.commit()
        return user

    # --- tokens --------------------------------------------------------

    def issue_token(self, user: User) -> str:
        return self._serializer.dumps(
            {
                "user_id": user.user_id,
                "email": user.email,
                "role": user.role,
                "business_name": user.business_name,
            }
        )

    def verify_token(self, token: str) -> dict[str, str]:
        try:
            claims = self._serializer.loads(token, max_age=self.token_max_age)
        except SignatureExpired:
            raise InvalidToken("Token has expired") from None
        except BadSignature:
            raise InvalidToken() from None
        if not isinstance(claims, dict) or not claims.get("user_id"):
            raise InvalidToken()
        return claims

    # --- profile maintenance --------------------------------------------

    def update_profile(self, user_id: str, update: ProfileUpdate) -> User:
        user = self.get(user_id)
        for key, value in update.changes().items():
            setattr(user, key, value)
        user.updated_at = datetime.now(timezone.utc)
        self.session.commit()
        return user

    def update_settings(self, user_id: str, update: SettingsUpdate) -> User:
        user = self.get(user_id)
        # JSON columns only notice reassignment, so build a new dict.
        settings = copy.deepcopy(user.settings or default_settings())
        for section, values in update.changes().items():
            merged = dict(settings.get(section) or {})
            merged.update(values)
            settings[section] = merged
        user.settings = settings
        user.updated_at = datetime.now(timezone.utc)
        self.session.commit()
        return user

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        user = self.get(user_id)
        if not check_password_hash(user.auth_account.password_hash, current_password or ""):
            raise IncorrectPassword()
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError.for_field(
                "new_password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        user.auth_account.password_hash = generate_password_hash(new_password, method=self.hash_method)
        user.updated_at = datetime.now(timezone.utc)
        self.session.commit()

    def deactivate(self, user_id: str) -> None:
        user = self.get(user_id)
        user.is_active = False
        user.updated_at = datetime.now(timezone.utc)
        self.session.commit()
        logger.info("Deactivated business %s", user_id)
