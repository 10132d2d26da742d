"""
Repository for the `otps` collection.

All writes that move a record forward (attempt increments, the verified
transition) are single find_one_and_update calls guarded on
``verified: False`` and ``attempts < max`` so concurrent verifications of
the same code are serialized by MongoDB.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase

from schemas.models.otp import OtpDoc

OTP_COLLECTION = "otps"


class OtpRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self._col = db[OTP_COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("email", ASCENDING), ("purpose", ASCENDING), ("verified", ASCENDING)]
        )
        # TTL reaper: MongoDB deletes the document once expires_at passes
        await self._col.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)

    async def insert(self, otp: OtpDoc) -> OtpDoc:
        result = await self._col.insert_one(otp.to_mongo())
        return otp.model_copy(update={"id": result.inserted_id})

    async def delete_unverified(self, email: str, purpose: str) -> int:
        result = await self._col.delete_many(
            {"email": email, "purpose": purpose, "verified": False}
        )
        return result.deleted_count

    async def find_latest_unverified(self, email: str, purpose: str) -> Optional[OtpDoc]:
        doc = await self._col.find_one(
            {"email": email, "purpose": purpose, "verified": False},
            sort=[("created_at", DESCENDING)],
        )
        return OtpDoc.from_mongo(doc)

    async def delete(self, otp_id: ObjectId) -> bool:
        result = await self._col.delete_one({"_id": otp_id})
        return result.deleted_count == 1

    async def increment_attempts(
        self, otp_id: ObjectId, max_attempts: int
    ) -> Optional[OtpDoc]:
        """Count one failed attempt. Returns None if the record is no longer live."""
        doc = await self._col.find_one_and_update(
            {"_id": otp_id, "verified": False, "attempts": {"$lt": max_attempts}},
            {"$inc": {"attempts": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return OtpDoc.from_mongo(doc)

    async def mark_verified(
        self, otp_id: ObjectId, max_attempts: int, verified_at: datetime
    ) -> Optional[OtpDoc]:
        """Move the record to its terminal verified state.

        Returns None when another request already consumed or exhausted it.
        """
        doc = await self._col.find_one_and_update(
            {"_id": otp_id, "verified": False, "attempts": {"$lt": max_attempts}},
            {
                "$set": {"verified": True, "verified_at": verified_at},
                "$inc": {"attempts": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        return OtpDoc.from_mongo(doc)
