import secrets
from functools import wraps

import bcrypt
from flask import g, redirect, url_for

from .models import ADMIN_ROLE
from .results import FORBIDDEN, Failure
from .views import render_failure

OTP_LOWER_BOUND = 100000
OTP_UPPER_BOUND = 999999


def hash_password(password: str) -> bytes:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())


def check_password(password: str, password_hash) -> bool:
    if not password_hash:
        return False
    if isinstance(password_hash, str):
        password_hash = password_hash.encode("utf-8")
    try:
        return bcrypt.checkpw(password.encode("utf-8"), bytes(password_hash))
    except ValueError:
        return False


def generate_otp_code() -> str:
    span = OTP_UPPER_BOUND - OTP_LOWER_BOUND + 1
    return str(OTP_LOWER_BOUND + secrets.randbelow(span))


def is_admin(user_document) -> bool:
    return bool(user_document) and user_document.get("role") == ADMIN_ROLE


def login_required(view):
    """Redirect to the login page unless the session holds a user."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        if g.get("user") is None:
            return redirect(url_for("login"))
        return view(*args, **kwargs)

    return wrapped


def admin_required(view):
    """Deny access unless the current user is an admin.

    Meant to sit under ``login_required``; on its own a missing user is
    simply not an admin.
    """

    @wraps(view)
    def wrapped(*args, **kwargs):
        if not is_admin(g.get("user")):
            return render_failure(Failure(FORBIDDEN, "Access Denied"))
        return view(*args, **kwargs)

    return wrapped
