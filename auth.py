import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Optional

from bson import ObjectId
from email_validator import EmailNotValidError, validate_email
from fastapi import Depends, Header, HTTPException

import config
from database import as_utc, create_document, get_db, utcnow
from errors import ValidationFailed
from schemas import AuthUser, Session
from validation import validate_signup

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    hashed = hashlib.sha256((salt + password).encode()).hexdigest()
    return f"{salt}${hashed}"


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        salt, hashed = stored_hash.split("$")
    except ValueError:
        return False
    return secrets.compare_digest(hashlib.sha256((salt + password).encode()).hexdigest(), hashed)


def create_session(user_id: str) -> str:
    token = secrets.token_urlsafe(32)
    expires = utcnow() + timedelta(days=config.SESSION_TTL_DAYS)
    create_document("session", Session(user_id=user_id, token=token, expires_at=expires))
    return token


def normalize_email(email: str) -> str:
    """Canonical, case-folded form used as the account key. Raises ``EmailNotValidError``."""
    return validate_email(email.strip(), check_deliverability=False).normalized.lower()


def register(db, email: str, password: str, confirm_password: str) -> dict:
    validate_signup(email, password, confirm_password)
    try:
        email = normalize_email(email)
    except EmailNotValidError:
        raise ValidationFailed("That email address is invalid!")

    if db["authuser"].find_one({"email": email}):
        raise ValidationFailed("That email address is already in use!")

    user_id = create_document("authuser", AuthUser(email=email, password_hash=hash_password(password)))
    logger.info("Registered user %s", user_id)
    return {"id": user_id, "email": email, "token": create_session(user_id)}


def login(db, email: str, password: str) -> dict:
    try:
        email = normalize_email(email)
    except EmailNotValidError:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    user = db["authuser"].find_one({"email": email})
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    user_id = str(user["_id"])
    return {"id": user_id, "email": user["email"], "token": create_session(user_id)}


def logout(db, token: str) -> None:
    db["session"].delete_one({"token": token})


def get_user_by_token(db, token: str) -> Optional[dict]:
    sess = db["session"].find_one({"token": token})
    if not sess or as_utc(sess["expires_at"]) <= utcnow():
        return None
    if not ObjectId.is_valid(sess["user_id"]):
        return None
    user = db["authuser"].find_one({"_id": ObjectId(sess["user_id"])})
    if not user:
        return None
    return {"id": str(user["_id"]), "email": user["email"], "token": token}


def get_current_user(authorization: Optional[str] = Header(None), db=Depends(get_db)) -> dict:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    if not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    token = authorization.split(" ", 1)[1]
    user = get_user_by_token(db, token)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user
