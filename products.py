import logging
from typing import List, Optional

from fastapi import HTTPException
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from database import create_document, object_id, serialize, utcnow
from errors import MarketError, PermissionDenied, failure
from schemas import Product
from storage import upload_images
from validation import validate_product

logger = logging.getLogger(__name__)


def matches(product: dict, query: str) -> bool:
    """Case-insensitive match on name or description; contact is matched verbatim."""
    needle = query.strip().lower()
    return (
        needle in (product.get("name") or "").lower()
        or needle in (product.get("description") or "").lower()
        or query.strip() in (product.get("contact") or "")
    )


def list_feed(db, q: Optional[str] = None, limit: Optional[int] = None) -> List[dict]:
    cursor = db.products.find({}).sort("created_at", DESCENDING)
    products = [serialize(d) for d in cursor]
    if q and q.strip():
        products = [p for p in products if matches(p, q)]
    if limit:
        products = products[:limit]
    return products


def list_for_owner(db, user: dict) -> List[dict]:
    cursor = db.products.find({"user_id": user["id"]}).sort("created_at", DESCENDING)
    return [serialize(d) for d in cursor]


def find_product(db, product_id: str) -> dict:
    doc = db.products.find_one({"_id": object_id(product_id, "product id")})
    if not doc:
        raise HTTPException(status_code=404, detail="Product not found")
    return doc


def get_product(db, product_id: str, user: dict) -> dict:
    product = serialize(find_product(db, product_id))
    product["is_owner"] = product.get("user_id") == user["id"]
    product["call_url"] = f"tel:{product['contact']}" if product.get("contact") else None
    return product


def _require_owner(doc: dict, user: dict) -> None:
    if doc.get("user_id") != user["id"]:
        raise PermissionDenied("Permission denied.")


def create_product(db, name: str, price, description: str, contact: str, images: List[str], user: dict) -> str:
    price_value = validate_product(name, price, contact, images)

    logger.info("Starting product upload with %d image(s)", len(images))
    try:
        image_urls = upload_images(images, user["id"])
        product = Product(
            name=name.strip(),
            price=price_value,
            description=(description or "").strip(),
            contact=contact.strip(),
            images=image_urls,
            user_id=user["id"],
            user_email=user.get("email"),
        )
        product_id = create_document("products", product)
    except (MarketError, PyMongoError) as e:
        logger.error("Add product error: %s", e)
        raise failure("add product", e) from e

    logger.info("Product saved with ID: %s", product_id)
    return product_id


def update_product(db, product_id: str, name: str, price, description: str, contact: str, images: List[str], user: dict) -> None:
    doc = find_product(db, product_id)
    price_value = validate_product(name, price, contact, images)

    try:
        _require_owner(doc, user)
        image_urls = upload_images(images, user["id"])
        db.products.update_one({"_id": doc["_id"]}, {"$set": {
            "name": name.strip(),
            "price": price_value,
            "description": (description or "").strip(),
            "contact": contact.strip(),
            "images": image_urls,
            "updated_at": utcnow(),
        }})
    except (MarketError, PyMongoError) as e:
        logger.error("Update error: %s", e)
        raise failure("update product", e) from e
    logger.info("Product %s updated", product_id)


def delete_product(db, product_id: str, user: dict) -> None:
    doc = find_product(db, product_id)
    try:
        _require_owner(doc, user)
        db.products.delete_one({"_id": doc["_id"]})
    except (MarketError, PyMongoError) as e:
        raise failure("delete product", e) from e
    logger.info("Product %s deleted", product_id)
