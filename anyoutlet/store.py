from typing import Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from .models import (
    ADMIN_ROLE,
    DEFAULT_SHOP_NAME,
    SITE_CONFIG_FIELDS,
    default_site_config,
    normalize_email,
)
from .results import Failure, out_of_stock, validation_failure


def to_object_id(value) -> Optional[ObjectId]:
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def ensure_indexes(db) -> None:
    db.users.create_index("email", unique=True)


# --- Users ---


def find_user_by_email(db, email: Optional[str]) -> Optional[Dict]:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return db.users.find_one({"email": normalized})


def find_user_by_id(db, user_id) -> Optional[Dict]:
    object_id = to_object_id(user_id)
    if object_id is None:
        return None
    return db.users.find_one({"_id": object_id})


def insert_user(db, user_document: Dict) -> Tuple[Optional[ObjectId], Optional[Failure]]:
    try:
        result = db.users.insert_one(user_document)
    except DuplicateKeyError:
        return None, validation_failure("Email already exists")
    return result.inserted_id, None


def delete_user(db, user_id: ObjectId) -> None:
    db.users.delete_one({"_id": user_id})


def confirm_user_otp(db, email: Optional[str], otp: str) -> bool:
    """Mark the pending user verified when ``otp`` matches its stored code."""
    normalized = normalize_email(email)
    if not normalized or not otp:
        return False
    result = db.users.update_one(
        {"email": normalized, "otp": otp, "is_verified": False},
        {"$set": {"is_verified": True, "otp": None}},
    )
    return result.modified_count == 1


def list_users(db) -> List[Dict]:
    return list(db.users.find())


def promote_user(db, user_id) -> Tuple[bool, Optional[Failure]]:
    object_id = to_object_id(user_id)
    if object_id is None:
        return False, validation_failure("Invalid user identifier.")
    result = db.users.update_one({"_id": object_id}, {"$set": {"role": ADMIN_ROLE}})
    return result.matched_count == 1, None


# --- Products ---


def list_products(db) -> List[Dict]:
    return list(db.products.find())


def find_product(db, product_id) -> Optional[Dict]:
    object_id = to_object_id(product_id)
    if object_id is None:
        return None
    return db.products.find_one({"_id": object_id})


def find_product_in_stock(db, product_id) -> Tuple[Optional[Dict], Optional[Failure]]:
    product = find_product(db, product_id)
    if not product or (product.get("stock") or 0) <= 0:
        return None, out_of_stock()
    return product, None


def insert_product(db, product_document: Dict) -> ObjectId:
    return db.products.insert_one(product_document).inserted_id


def reserve_product_unit(db, product_id) -> Tuple[Optional[Dict], Optional[Failure]]:
    """Take one unit of stock, failing when none is left.

    The stock check and the decrement happen in a single conditional update,
    so two buyers racing for the last unit cannot both win it.
    """
    object_id = to_object_id(product_id)
    if object_id is None:
        return None, out_of_stock()
    product = db.products.find_one_and_update(
        {"_id": object_id, "stock": {"$gt": 0}},
        {"$inc": {"stock": -1}},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        return None, out_of_stock()
    return product, None


# --- Site config ---


def get_or_create_site_config(db) -> Dict:
    db.site_config.update_one(
        {}, {"$setOnInsert": default_site_config()}, upsert=True
    )
    return db.site_config.find_one({})


def update_site_config(db, fields: Dict) -> Dict:
    updates = {
        key: str(fields.get(key) or "").strip()
        for key in SITE_CONFIG_FIELDS
        if key in fields
    }
    if "shop_name" in updates and not updates["shop_name"]:
        updates["shop_name"] = DEFAULT_SHOP_NAME

    if updates:
        on_insert = {
            key: value
            for key, value in default_site_config().items()
            if key not in updates
        }
        change = {"$set": updates}
        if on_insert:
            change["$setOnInsert"] = on_insert
        db.site_config.update_one({}, change, upsert=True)
    return get_or_create_site_config(db)
