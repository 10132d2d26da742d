"""
Repository for the `users` collection.

Lookups are by normalized email (unique index) or ObjectId. Partial updates
go through update() so callers never rewrite whole documents.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase

from schemas.models.user import UserDoc

USER_COLLECTION = "users"


class UserRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self._col = db[USER_COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("email", ASCENDING)], unique=True)
        await self._col.create_index([("google_id", ASCENDING)], sparse=True)

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        return UserDoc.from_mongo(await self._col.find_one({"email": email}))

    async def find_by_id(self, user_id: Union[str, ObjectId]) -> Optional[UserDoc]:
        if isinstance(user_id, str):
            if not ObjectId.is_valid(user_id):
                return None
            user_id = ObjectId(user_id)
        return UserDoc.from_mongo(await self._col.find_one({"_id": user_id}))

    async def insert(self, user: UserDoc) -> UserDoc:
        result = await self._col.insert_one(user.to_mongo())
        return user.model_copy(update={"id": result.inserted_id})

    async def update(
        self,
        user_id: ObjectId,
        fields: dict[str, Any],
        *,
        inc: Optional[dict[str, int]] = None,
    ) -> Optional[UserDoc]:
        """Apply ``$set`` *fields* (and optional ``$inc``) and return the new document."""
        update: dict[str, Any] = {}
        if fields:
            update["$set"] = fields
        if inc:
            update["$inc"] = inc
        doc = await self._col.find_one_and_update(
            {"_id": user_id},
            update,
            return_document=ReturnDocument.AFTER,
        )
        return UserDoc.from_mongo(doc)
