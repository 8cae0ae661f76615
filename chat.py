"""
Buyer/seller conversations.

A conversation holds two participants, their names and pictures as they
were when the thread started, the last message and a per-participant unread
counter. It is created on the first message a user sends to another user
about a product. Messages are append-only apart from their read flag.

Clients poll ``list_conversations`` and ``list_messages`` with ``since`` to
follow a thread live; results are ordered in memory so no compound index is
needed on the collections.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import HTTPException
from pymongo.errors import PyMongoError

from database import as_utc, create_document, get_documents, object_id, serialize, utcnow
from errors import MarketError, PermissionDenied, ValidationFailed, failure
from products import find_product
from profiles import get_public_profile, profile_card
from schemas import Conversation, Message

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
MAX_MESSAGE_LENGTH = 5000


def _moment(value) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str):
        try:
            return as_utc(datetime.fromisoformat(value))
        except ValueError:
            return _EPOCH
    return _EPOCH


def sort_messages(messages: List[dict]) -> List[dict]:
    """Oldest first; messages without a timestamp sort before everything else."""
    return sorted(messages, key=lambda m: _moment(m.get("timestamp")))


def other_participant(conv: dict, user_id: str) -> Optional[str]:
    return next((p for p in conv.get("participants", []) if p != user_id), None)


def _find_conversation(db, conversation_id: str, user: dict) -> dict:
    conv = db.conversations.find_one({"_id": object_id(conversation_id, "conversation id")})
    if not conv:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if user["id"] not in conv.get("participants", []):
        raise PermissionDenied("Permission denied.")
    return conv


def conversation_view(conv: dict, user_id: str) -> dict:
    other = other_participant(conv, user_id)
    view = serialize(conv)
    view["other_user_id"] = other
    view["other_user_name"] = conv.get("participant_names", {}).get(other) or "User"
    view["other_user_image"] = conv.get("participant_images", {}).get(other)
    view["unread"] = conv.get("unread_count", {}).get(user_id, 0)
    return view


def start_conversation(db, sender: dict, recipient_id: str, product_id: Optional[str] = None) -> dict:
    """Return the conversation between the pair about ``product_id``, creating it if needed."""
    if recipient_id == sender["id"]:
        raise ValidationFailed("Cannot start conversation with self")

    key = {"pair": sorted([sender["id"], recipient_id]), "product_id": product_id}
    existing = db.conversations.find_one(key)
    if existing:
        return existing

    recipient = profile_card(db, recipient_id)
    if recipient is None:
        raise HTTPException(status_code=404, detail="User not found")
    me = profile_card(db, sender["id"]) or {"name": "User", "image": None}
    product_name = find_product(db, product_id).get("name") if product_id else None

    conv = Conversation(
        participants=[sender["id"], recipient_id],
        pair=key["pair"],
        participant_names={sender["id"]: me["name"], recipient_id: recipient["name"]},
        participant_images={sender["id"]: me["image"], recipient_id: recipient["image"]},
        product_id=product_id,
        product_name=product_name,
        unread_count={sender["id"]: 0, recipient_id: 0},
    )
    now = utcnow()
    # Upsert on the pair key so concurrent first messages share one thread
    result = db.conversations.update_one(
        key,
        {"$setOnInsert": {**conv.model_dump(), "created_at": now, "updated_at": now}},
        upsert=True,
    )
    if result.upserted_id is not None:
        logger.info("Started conversation %s", result.upserted_id)
    return db.conversations.find_one(key)


def send_message(db, sender: dict, text: str, conversation_id: Optional[str] = None,
                 recipient_id: Optional[str] = None, product_id: Optional[str] = None) -> dict:
    text = (text or "").strip()
    if not text:
        raise ValidationFailed("Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationFailed(f"Message is longer than {MAX_MESSAGE_LENGTH} characters")

    if conversation_id:
        conv = _find_conversation(db, conversation_id, sender)
    elif recipient_id:
        conv = start_conversation(db, sender, recipient_id, product_id)
    else:
        raise ValidationFailed("A conversation or a recipient is required")

    other = other_participant(conv, sender["id"])
    now = utcnow()
    try:
        msg_id = create_document("messages", Message(
            conversation_id=str(conv["_id"]),
            sender_id=sender["id"],
            text=text,
            timestamp=now,
            read=False,
        ))
        db.conversations.update_one({"_id": conv["_id"]}, {
            "$set": {"last_message": text, "last_message_time": now, "updated_at": now},
            "$inc": {f"unread_count.{other}": 1},
        })
    except (MarketError, PyMongoError) as e:
        logger.error("Error sending message: %s", e)
        raise failure("send message", e) from e

    return serialize(db.messages.find_one({"_id": object_id(msg_id)}))


def list_messages(db, conversation_id: str, user: dict, since: Optional[datetime] = None) -> List[dict]:
    conv = _find_conversation(db, conversation_id, user)
    msgs = sort_messages(get_documents("messages", {"conversation_id": str(conv["_id"])}))
    if since is not None:
        since = as_utc(since)
        msgs = [m for m in msgs if _moment(m.get("timestamp")) > since]
    return [serialize(m) for m in msgs]


def mark_read(db, conv: dict, user: dict) -> None:
    """Reset the viewer's unread counter and flag the other side's messages as read."""
    db.conversations.update_one({"_id": conv["_id"]}, {"$set": {f"unread_count.{user['id']}": 0}})
    other = other_participant(conv, user["id"])
    db.messages.update_many(
        {"conversation_id": str(conv["_id"]), "sender_id": other, "read": False},
        {"$set": {"read": True}},
    )


def open_chat(db, conversation_id: str, user: dict) -> dict:
    conv = _find_conversation(db, conversation_id, user)
    try:
        mark_read(db, conv, user)
    except PyMongoError as e:
        logger.error("Error marking as read: %s", e)
        raise failure("open chat", e) from e

    other = other_participant(conv, user["id"])
    try:
        other_profile = get_public_profile(db, other)
    except HTTPException:
        other_profile = None

    conv = db.conversations.find_one({"_id": conv["_id"]})
    return {
        "conversation": conversation_view(conv, user["id"]),
        "other_user": other_profile,
        "messages": list_messages(db, conversation_id, user),
    }


def list_conversations(db, user: dict, since: Optional[datetime] = None) -> List[dict]:
    convs = [c for c in db.conversations.find({"participants": user["id"]})
             if (c.get("last_message") or "").strip()]
    if since is not None:
        since = as_utc(since)
        convs = [c for c in convs if _moment(c.get("last_message_time")) > since]
    convs.sort(key=lambda c: _moment(c.get("last_message_time")), reverse=True)
    return [conversation_view(c, user["id"]) for c in convs]


def unread_total(db, user: dict) -> int:
    return sum(c["unread"] for c in list_conversations(db, user))


def delete_conversation(db, conversation_id: str, user: dict) -> None:
    conv = _find_conversation(db, conversation_id, user)
    try:
        db.messages.delete_many({"conversation_id": str(conv["_id"])})
        db.conversations.delete_one({"_id": conv["_id"]})
    except PyMongoError as e:
        raise failure("delete conversation", e) from e
    logger.info("Deleted conversation %s", conversation_id)
