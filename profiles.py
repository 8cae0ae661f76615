import logging
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException
from pymongo.errors import PyMongoError

from database import utcnow
from errors import MarketError, failure
from schemas import UserProfile
from storage import is_remote_url, profile_image_path, upload_image
from validation import validate_profile

logger = logging.getLogger(__name__)


def display_name(profile: Optional[dict], email: Optional[str]) -> str:
    if profile and profile.get("name"):
        return profile["name"]
    if email:
        return email.split("@")[0]
    return "User"


def get_profile(db, user: dict) -> dict:
    doc = db.users.find_one({"_id": user["id"]}) or {}
    return {
        "id": user["id"],
        "email": user.get("email"),
        "name": doc.get("name", ""),
        "mobile": doc.get("mobile", ""),
        "profile_image": doc.get("profile_image"),
        "display_name": display_name(doc, user.get("email")),
    }


def get_public_profile(db, user_id: str) -> dict:
    card = profile_card(db, user_id)
    if card is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {"id": user_id, "name": card["name"], "profile_image": card["image"]}


def save_profile(db, user: dict, name: str, mobile: Optional[str] = None,
                 profile_image: Optional[str] = None, save_without_image: bool = False) -> dict:
    """
    Save the caller's profile with merge semantics.

    A new picture (a data URL) is uploaded first. When that upload fails the
    whole save fails, unless ``save_without_image`` is set, in which case the
    profile is written without touching the stored picture and the response
    carries a warning.
    """
    validate_profile(name, mobile)

    warning = None
    image_url = profile_image
    if profile_image and not is_remote_url(profile_image):
        try:
            image_url = upload_image(profile_image, user["id"], path=profile_image_path(user["id"]))
        except (MarketError, PyMongoError) as e:
            logger.error("Image upload failed: %s", e)
            if not save_without_image:
                raise failure("update profile", e) from e
            image_url = None
            warning = "Profile saved without the new image"

    # Unset picture is left out so a previously stored one survives the merge
    fields = UserProfile(
        name=name.strip(),
        mobile=(mobile or "").strip(),
        email=user.get("email"),
        profile_image=image_url or None,
        updated_at=utcnow(),
    ).model_dump(exclude_none=True)

    try:
        db.users.update_one({"_id": user["id"]}, {"$set": fields}, upsert=True)
    except PyMongoError as e:
        raise failure("update profile", e) from e

    result = get_profile(db, user)
    if warning:
        result["warning"] = warning
    return result


def profile_card(db, user_id: str) -> Optional[dict]:
    """Name and picture as denormalized into conversations; None for unknown users."""
    doc = db.users.find_one({"_id": user_id})
    account = db.authuser.find_one({"_id": ObjectId(user_id)}) if ObjectId.is_valid(user_id) else None
    if not doc and not account:
        return None
    email = (doc or {}).get("email") or (account or {}).get("email")
    return {"name": display_name(doc, email), "image": (doc or {}).get("profile_image")}

