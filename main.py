import os
from datetime import datetime
from typing import List, Optional, Union

from fastapi import Depends, FastAPI, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import auth
import chat
import config
import database
import products
import profiles
import storage
from database import get_db
from errors import install_handlers
from favorites import FavoritesStore
from logging_setup import setup_logging

setup_logging()

app = FastAPI(title="UniMart API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_handlers(app)

favorites_store = FavoritesStore(config.FAVORITES_PATH)


def get_favorites() -> FavoritesStore:
    return favorites_store


# Auth Endpoints
class RegisterBody(BaseModel):
    email: str = ""
    password: str = ""
    confirm_password: str = ""

class LoginBody(BaseModel):
    email: str
    password: str

@app.post("/api/auth/register")
def register(body: RegisterBody, db=Depends(get_db)):
    result = auth.register(db, body.email, body.password, body.confirm_password)
    result["message"] = "Account created successfully"
    return result

@app.post("/api/auth/login")
def login(body: LoginBody, db=Depends(get_db)):
    return auth.login(db, body.email, body.password)

@app.post("/api/auth/logout")
def logout(user=Depends(auth.get_current_user), db=Depends(get_db)):
    auth.logout(db, user["token"])
    return {"message": "Logged out successfully"}


# Products Endpoints
class ProductBody(BaseModel):
    name: str = ""
    price: Union[float, str, None] = None
    description: str = ""
    contact: str = ""
    images: List[str] = Field(default_factory=list)

@app.get("/api/products")
def list_products(q: Optional[str] = None, limit: Optional[int] = Query(None, ge=1, le=500), db=Depends(get_db)):
    return {"items": products.list_feed(db, q, limit)}

@app.get("/api/products/mine")
def my_products(user=Depends(auth.get_current_user), db=Depends(get_db)):
    return {"items": products.list_for_owner(db, user)}

@app.post("/api/products", status_code=201)
def create_product(body: ProductBody, user=Depends(auth.get_current_user), db=Depends(get_db)):
    product_id = products.create_product(
        db, body.name, body.price, body.description, body.contact, body.images, user
    )
    return {"id": product_id, "message": "Product added successfully!"}

@app.get("/api/products/{product_id}")
def get_product(product_id: str, user=Depends(auth.get_current_user), db=Depends(get_db), store=Depends(get_favorites)):
    product = products.get_product(db, product_id, user)
    product["is_favorite"] = store.contains(user["id"], product_id)
    return product

@app.put("/api/products/{product_id}")
def update_product(product_id: str, body: ProductBody, user=Depends(auth.get_current_user), db=Depends(get_db)):
    products.update_product(
        db, product_id, body.name, body.price, body.description, body.contact, body.images, user
    )
    return {"id": product_id, "message": "Product updated successfully!"}

@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, user=Depends(auth.get_current_user), db=Depends(get_db)):
    products.delete_product(db, product_id, user)
    return {"id": product_id, "message": "Product deleted successfully"}


# Profile Endpoints
class ProfileBody(BaseModel):
    name: str = ""
    mobile: Optional[str] = None
    profile_image: Optional[str] = None
    save_without_image: bool = False

@app.get("/api/profile")
def get_profile(user=Depends(auth.get_current_user), db=Depends(get_db)):
    return profiles.get_profile(db, user)

@app.put("/api/profile")
def save_profile(body: ProfileBody, user=Depends(auth.get_current_user), db=Depends(get_db)):
    result = profiles.save_profile(
        db, user, body.name, body.mobile, body.profile_image, body.save_without_image
    )
    result["message"] = "Profile updated successfully"
    return result

@app.get("/api/users/{user_id}")
def get_user(user_id: str, user=Depends(auth.get_current_user), db=Depends(get_db)):
    return profiles.get_public_profile(db, user_id)


# Messaging
class SendMessageBody(BaseModel):
    text: str
    conversation_id: Optional[str] = None
    recipient_id: Optional[str] = None
    product_id: Optional[str] = None

@app.post("/api/messages", status_code=201)
def send_message(body: SendMessageBody, user=Depends(auth.get_current_user), db=Depends(get_db)):
    return chat.send_message(db, user, body.text, body.conversation_id, body.recipient_id, body.product_id)

@app.get("/api/conversations")
def list_conversations(since: Optional[datetime] = None, user=Depends(auth.get_current_user), db=Depends(get_db)):
    return {"items": chat.list_conversations(db, user, since)}

@app.get("/api/conversations/unread")
def unread_total(user=Depends(auth.get_current_user), db=Depends(get_db)):
    return {"unread": chat.unread_total(db, user)}

@app.post("/api/conversations/{conversation_id}/open")
def open_chat(conversation_id: str, user=Depends(auth.get_current_user), db=Depends(get_db)):
    return chat.open_chat(db, conversation_id, user)

@app.get("/api/conversations/{conversation_id}/messages")
def list_messages(conversation_id: str, since: Optional[datetime] = None, user=Depends(auth.get_current_user), db=Depends(get_db)):
    return {"items": chat.list_messages(db, conversation_id, user, since)}

@app.delete("/api/conversations/{conversation_id}")
def delete_conversation(conversation_id: str, user=Depends(auth.get_current_user), db=Depends(get_db)):
    chat.delete_conversation(db, conversation_id, user)
    return {"id": conversation_id, "message": "Conversation deleted"}


# Favorites
@app.get("/api/favorites")
def list_favorites(user=Depends(auth.get_current_user), db=Depends(get_db), store=Depends(get_favorites)):
    return {"items": store.list_products(db, user["id"])}

@app.get("/api/favorites/ids")
def favorite_ids(user=Depends(auth.get_current_user), store=Depends(get_favorites)):
    return {"items": store.ids(user["id"])}

@app.put("/api/favorites/{product_id}")
def add_favorite(product_id: str, user=Depends(auth.get_current_user), store=Depends(get_favorites)):
    return {"items": store.add(user["id"], product_id)}

@app.delete("/api/favorites/{product_id}")
def remove_favorite(product_id: str, user=Depends(auth.get_current_user), store=Depends(get_favorites)):
    return {"items": store.remove(user["id"], product_id)}

@app.post("/api/favorites/{product_id}/toggle")
def toggle_favorite(product_id: str, user=Depends(auth.get_current_user), store=Depends(get_favorites)):
    return {"product_id": product_id, "is_favorite": store.toggle(user["id"], product_id)}


# Storage
class ImageBody(BaseModel):
    image: str

@app.post("/api/storage/images", status_code=201)
def upload_image(body: ImageBody, user=Depends(auth.get_current_user)):
    return {"url": storage.upload_image(body.image, user["id"])}

@app.get("/api/storage/{path:path}")
def download_object(path: str):
    data, content_type = storage.download(path)
    return Response(content=data, media_type=content_type)


@app.get("/")
def read_root():
    return {"message": "UniMart backend running"}

@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = database.db.name if hasattr(database.db, "name") else "✅ Connected"
            response["connection_status"] = "Connected"
            try:
                collections = database.db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️ Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
