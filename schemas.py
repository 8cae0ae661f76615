"""
Database Schemas for UniMart (campus marketplace)

Each Pydantic model maps to one MongoDB collection; the collection name is
given in the class docstring. Use these for validation and to keep
collections consistent.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

import config


# Accounts that can sign in
class AuthUser(BaseModel):
    """
    Collection: "authuser"
    """
    email: EmailStr = Field(..., description="Unique email address")
    password_hash: str = Field(..., description="Password hash with salt")


class Session(BaseModel):
    """
    Collection: "session"
    """
    user_id: str = Field(..., description="Auth user id")
    token: str = Field(..., description="Bearer token")
    expires_at: datetime = Field(..., description="Expiry timestamp (UTC)")


# Public profile, keyed by the auth user id
class UserProfile(BaseModel):
    """
    Collection: "users"
    """
    name: str = Field(..., description="Display name")
    mobile: str = Field("", description="10-digit mobile number, optional")
    email: Optional[str] = None
    profile_image: Optional[str] = Field(None, description="Download URL of the profile picture")
    updated_at: Optional[datetime] = None


# Items students put up for sale
class Product(BaseModel):
    """
    Collection: "products"
    """
    name: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)
    description: str = ""
    contact: str = Field(..., min_length=10)
    images: List[str] = Field(..., min_length=1, max_length=config.MAX_PRODUCT_IMAGES)
    user_id: str = Field(..., description="Owner auth user id")
    user_email: Optional[str] = None


# A buyer/seller thread, optionally about one product
class Conversation(BaseModel):
    """
    Collection: "conversations"
    """
    participants: List[str] = Field(..., min_length=2, max_length=2, description="Two user ids")
    pair: List[str] = Field(default_factory=list, description="Participant ids, sorted; with product_id names the thread")
    participant_names: Dict[str, str] = Field(default_factory=dict)
    participant_images: Dict[str, Optional[str]] = Field(default_factory=dict)
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    last_message: str = ""
    last_message_time: Optional[datetime] = None
    unread_count: Dict[str, int] = Field(default_factory=dict)


class Message(BaseModel):
    """
    Collection: "messages"
    """
    conversation_id: str
    sender_id: str
    text: str = Field(..., min_length=1)
    timestamp: datetime
    read: bool = Field(False)


# Binary objects addressed by path, e.g. "products/{uid}/..." or "profiles/{uid}_{ts}.jpg"
class StorageObject(BaseModel):
    """
    Collection: "storageobject"
    """
    path: str
    content_type: str = "image/jpeg"
    size: int = Field(..., ge=0)
    owner_id: str
    data: bytes
