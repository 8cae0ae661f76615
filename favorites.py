"""
Favorites store.

Favorites are a per-user list of product ids kept in a local key-value file
rather than the shared database, one entry per user under
``favorites_{uid}``. Adding an id that is present, or removing one that is
absent, leaves the list unchanged.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Union

from bson import ObjectId

from database import serialize

logger = logging.getLogger(__name__)


def favorites_key(user_id: str) -> str:
    return f"favorites_{user_id}"


class FavoritesStore:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, List[str]]:
        if not self.path.exists():
            return {}
        with open(self.path, "r") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError:
                logger.warning("Favorites file %s is corrupt, starting empty", self.path)
                return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, List[str]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w") as f:
            json.dump(data, f)
        tmp.replace(self.path)

    def ids(self, user_id: str) -> List[str]:
        with self._lock:
            return list(self._load().get(favorites_key(user_id), []))

    def contains(self, user_id: str, product_id: str) -> bool:
        return product_id in self.ids(user_id)

    def add(self, user_id: str, product_id: str) -> List[str]:
        with self._lock:
            data = self._load()
            ids = data.setdefault(favorites_key(user_id), [])
            if product_id not in ids:
                ids.append(product_id)
                self._save(data)
            return list(ids)

    def remove(self, user_id: str, product_id: str) -> List[str]:
        with self._lock:
            data = self._load()
            ids = data.get(favorites_key(user_id), [])
            if product_id in ids:
                ids = [i for i in ids if i != product_id]
                data[favorites_key(user_id)] = ids
                self._save(data)
            return list(ids)

    def toggle(self, user_id: str, product_id: str) -> bool:
        """Flip membership and return whether the product is now a favorite."""
        with self._lock:
            data = self._load()
            ids = data.setdefault(favorites_key(user_id), [])
            if product_id in ids:
                ids.remove(product_id)
                state = False
            else:
                ids.append(product_id)
                state = True
            self._save(data)
            return state

    def list_products(self, db, user_id: str) -> List[dict]:
        """Resolve favorite ids to products, skipping any that were deleted."""
        ids = [ObjectId(i) for i in self.ids(user_id) if ObjectId.is_valid(i)]
        if not ids:
            return []
        found = {str(d["_id"]): d for d in db.products.find({"_id": {"$in": ids}})}
        return [serialize(found[str(i)]) for i in ids if str(i) in found]
