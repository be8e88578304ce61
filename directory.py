"""Read-only lookups into the user and product collections."""
from typing import Any, Dict, Iterable, List, Optional

from pymongo.database import Database

from database import parse_object_id

USER_FIELDS = {"name": 1, "email": 1, "phone": 1, "role": 1}
PRODUCT_FIELDS = {"name": 1, "price": 1, "images": 1}


class UserDirectory:
    def __init__(self, db: Database):
        self.collection = db["user"]

    def get(self, user_id: Any) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(user_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid}, USER_FIELDS)

    def get_many(self, user_ids: Iterable[Any]) -> Dict[str, Dict[str, Any]]:
        oids = {oid for oid in map(parse_object_id, user_ids) if oid is not None}
        if not oids:
            return {}
        return {str(u["_id"]): u for u in self.collection.find({"_id": {"$in": list(oids)}}, USER_FIELDS)}


class ProductCatalog:
    def __init__(self, db: Database):
        self.collection = db["product"]

    def get(self, product_id: Any) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(product_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid})

    def get_many(self, product_ids: Iterable[Any]) -> Dict[str, Dict[str, Any]]:
        oids = {oid for oid in map(parse_object_id, product_ids) if oid is not None}
        if not oids:
            return {}
        return {str(p["_id"]): p for p in self.collection.find({"_id": {"$in": list(oids)}}, PRODUCT_FIELDS)}

    def list(self, q: Optional[str] = None, category: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        filt: Dict[str, Any] = {}
        if q:
            filt["name"] = {"$regex": q, "$options": "i"}
        if category:
            filt["category"] = category
        return list(self.collection.find(filt).limit(limit))
