"""
Form validation.

Each validator reports the first failing rule only, in the order the form
presents its fields.
"""

import math
import re
from typing import List, Optional, Union

import config
from errors import ValidationFailed

MIN_CONTACT_LENGTH = 10
MIN_PASSWORD_LENGTH = 6

_MOBILE_RE = re.compile(r"^\d{10}$")


def parse_price(price: Union[str, float, int, None]) -> float:
    if price is None or (isinstance(price, str) and not price.strip()):
        raise ValidationFailed("Price is required")
    try:
        value = float(price.strip() if isinstance(price, str) else price)
    except (TypeError, ValueError):
        raise ValidationFailed("Please enter a valid price")
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise ValidationFailed("Please enter a valid price")
    return value


def product_errors(name: str, price, contact: str, images: List[str]) -> List[str]:
    """Return every failed rule for a product form, in field order."""
    errors = []
    if not (name or "").strip():
        errors.append("Product name is required")

    try:
        parse_price(price)
    except ValidationFailed as e:
        errors.append(e.message)

    contact = (contact or "").strip()
    if not contact:
        errors.append("Contact number is required")
    elif len(contact) < MIN_CONTACT_LENGTH:
        errors.append("Please enter a valid contact number")

    if not images:
        errors.append("At least one image is required")
    elif len(images) > config.MAX_PRODUCT_IMAGES:
        errors.append(f"Maximum {config.MAX_PRODUCT_IMAGES} images allowed")
    return errors


def validate_product(name: str, price, contact: str, images: List[str]) -> float:
    """Raise on the first invalid field; return the parsed price."""
    errors = product_errors(name, price, contact, images)
    if errors:
        raise ValidationFailed(errors[0])
    return parse_price(price)


def validate_profile(name: str, mobile: Optional[str]) -> None:
    if not (name or "").strip():
        raise ValidationFailed("Please enter your name")
    if mobile and not _MOBILE_RE.match(re.sub(r"\s", "", mobile)):
        raise ValidationFailed("Please enter a valid 10-digit mobile number")


def validate_signup(email: str, password: str, confirm_password: str) -> None:
    if not email or not password or not confirm_password:
        raise ValidationFailed("All fields are required")
    if password != confirm_password:
        raise ValidationFailed("Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
