"""
Collection repositories

Each repository wraps one collection and returns serialized documents
(``id`` instead of ``_id``, ISO timestamps) or ``None`` when nothing matched.
Ids passed in are already-validated ``ObjectId`` instances.
"""
from datetime import datetime, timezone
from typing import List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ReturnDocument

from database import create_document, get_documents, serialize_doc
from schemas import CategoryOut, category_pattern, is_object_id, slugify

NEWEST_FIRST = [("createdAt", -1), ("_id", -1)]


class Repository:
    collection_name: str = ""

    def __init__(self, db):
        self.db = db
        self.collection = db[self.collection_name]

    def list_all(self, filter_dict: Optional[dict] = None) -> List[dict]:
        docs = get_documents(self.db, self.collection_name, filter_dict, sort=NEWEST_FIRST)
        return [serialize_doc(d) for d in docs]

    def get_by_id(self, oid: ObjectId) -> Optional[dict]:
        return serialize_doc(self.collection.find_one({"_id": oid}))

    def create(self, data: Union[BaseModel, dict]) -> dict:
        new_id = create_document(self.db, self.collection_name, data)
        return self.get_by_id(ObjectId(new_id))

    def update(self, oid: ObjectId, changes: dict) -> Optional[dict]:
        changes = {**changes, "updatedAt": datetime.now(timezone.utc)}
        doc = self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return serialize_doc(doc)

    def delete(self, oid: ObjectId) -> Optional[dict]:
        return serialize_doc(self.collection.find_one_and_delete({"_id": oid}))


class ProductRepository(Repository):
    collection_name = "product"

    def latest(self) -> Optional[dict]:
        docs = get_documents(self.db, self.collection_name, limit=1, sort=NEWEST_FIRST)
        return serialize_doc(docs[0]) if docs else None

    def toggle_availability(self, oid: ObjectId) -> Optional[dict]:
        # Read-modify-write: two concurrent toggles may both observe the same state.
        doc = self.collection.find_one({"_id": oid}, {"isAvailable": 1})
        if not doc:
            return None
        return self.update(oid, {"isAvailable": not doc.get("isAvailable", True)})

    def distinct_categories(self) -> List[dict]:
        names = [c for c in self.collection.distinct("category") if isinstance(c, str) and c.strip()]
        return [CategoryOut(name=name, slug=slugify(name)).model_dump() for name in sorted(names)]

    def list_by_category(self, slug: str) -> List[dict]:
        """Products whose category contains the de-slugified name, ignoring case."""
        return self.list_all({"category": {"$regex": category_pattern(slug), "$options": "i"}})


class OrderRepository(Repository):
    collection_name = "order"

    def get_expanded(self, oid: ObjectId) -> Optional[dict]:
        """Fetch an order with each item's product id replaced by the product
        document, when that product still exists."""
        order = self.collection.find_one({"_id": oid})
        if not order:
            return None
        ids = {it.get("product") for it in order.get("items", []) if is_object_id(it.get("product"))}
        products = {}
        if ids:
            for p in self.db[ProductRepository.collection_name].find({"_id": {"$in": [ObjectId(i) for i in ids]}}):
                products[str(p["_id"])] = p
        for it in order.get("items", []):
            product = products.get(it.get("product"))
            if product is not None:
                it["product"] = product
        return serialize_doc(order)


class UserRepository(Repository):
    collection_name = "user"

    def find_by_email(self, email: str) -> Optional[dict]:
        """Raw document including the password hash; never return it to clients."""
        return self.collection.find_one({"email": email})
