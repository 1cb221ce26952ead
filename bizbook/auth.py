"""Bearer-token helpers for request handlers."""
from __future__ import annotations

from functools import wraps

from flask import current_app, g, request

from .accounts import UserStore
from .errors import AuthError, Forbidden, InvalidToken, NotFound
from .extensions import db


def user_store() -> UserStore:
    config = current_app.config
    return UserStore(
        db.session,
        config["SECRET_KEY"],
        token_max_age=config.get("TOKEN_MAX_AGE_SECONDS", 7 * 24 * 60 * 60),
        hash_method=config.get("PASSWORD_HASH_METHOD", "scrypt"),
    )


def bearer_token() -> str:
    """Return the token from ``Authorization: Bearer <token>``."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise AuthError("Access denied. No token provided.")
    token = auth_header[7:].strip()  # Remove "Bearer " prefix
    if not token:
        raise AuthError("Access denied. No token provided.")
    return token


def authenticate_request() -> dict[str, str]:
    """Verify the bearer token and load the account it belongs to.

    Sets ``g.claims`` and ``g.current_user``. Tokens of deactivated accounts
    are refused even when their signature is still valid.
    """
    store = user_store()
    claims = store.verify_token(bearer_token())
    try:
        user = store.get(claims["user_id"])
    except NotFound:
        raise InvalidToken("User not found or inactive") from None
    g.claims = claims
    g.current_user = user
    return claims


def business_owner_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        authenticate_request()
        if g.current_user.role != "business_owner":
            raise Forbidden()
        return view(*args, **kwargs)

    return wrapped


def current_business_id() -> str:
    return g.current_user.user_id
