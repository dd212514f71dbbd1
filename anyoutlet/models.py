"""
Document shapes for the three Mongo collections.

Each builder returns a plain dict ready for ``insert_one``:
- users       -> new_user_document
- products    -> new_product_document
- site_config -> default_site_config
"""

import math
from datetime import datetime
from typing import Dict, Optional

DEFAULT_SHOP_NAME = "Any Outlet"
DEFAULT_ROLE = "member"
ADMIN_ROLE = "admin"
SITE_CONFIG_FIELDS = ("shop_name", "address", "phone", "email", "line_id")


def normalize_email(value: Optional[str]) -> str:
    return str(value or "").strip().lower()


def new_user_document(
    name: str, email: str, password_hash: bytes, otp: str, role: str = DEFAULT_ROLE
) -> Dict:
    return {
        "name": name,
        "email": normalize_email(email),
        "password": password_hash,
        "role": role or DEFAULT_ROLE,
        "otp": otp,
        "is_verified": False,
        "created_at": datetime.utcnow(),
    }


def new_product_document(
    name: str,
    description: str,
    real_price: float,
    sale_price: float,
    stock: int,
    image: str = "",
) -> Dict:
    return {
        "name": name,
        "description": description,
        "real_price": real_price,
        "sale_price": sale_price,
        "stock": stock,
        "image": image or "",
        "created_at": datetime.utcnow(),
    }


def default_site_config() -> Dict:
    return {
        "shop_name": DEFAULT_SHOP_NAME,
        "address": "",
        "phone": "",
        "email": "",
        "line_id": "",
    }


def parse_price(value) -> Optional[float]:
    """Coerce a submitted price to a float rounded to cents, or None."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        parsed = round(float(value), 2)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed) or parsed < 0:
        return None
    return parsed


def parse_stock(value) -> Optional[int]:
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
