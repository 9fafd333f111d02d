"""
Identity repository implementation.
"""

import asyncio
from typing import Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from models.identity import Identity
from repositories.base import BaseRepository, to_object_id


class IdentityRepository(BaseRepository[Identity]):
    """Repository for Identity entities."""

    def __init__(self, database: Database):
        super().__init__(database, "identities", Identity)

    async def find_by_fingerprint(self, fingerprint: str) -> Optional[Identity]:
        """
        Find the most recent identity registered with a fingerprint value.

        Fingerprints are not unique, so older registrations may exist.

        Args:
            fingerprint: Client fingerprint value

        Returns:
            Identity if found, None otherwise
        """
        matches = await self.find_many(
            {"fingerprint": fingerprint}, limit=1, sort=[("created_at", DESCENDING)]
        )
        return matches[0] if matches else None

    async def compare_and_set(
        self, entity_id: str | ObjectId, expected_version: int, update_dict: dict
    ) -> Optional[Identity]:
        """
        Write fields only if the stored version still matches.

        The filter and the write are one atomic operation on the document, so
        a concurrent writer that got there first makes this a no-op.

        Args:
            entity_id: Identity ID
            expected_version: Version the caller read
            update_dict: Fields to set

        Returns:
            Updated identity, or None if missing or the version moved on
        """
        object_id = to_object_id(entity_id)
        if object_id is None:
            return None

        def _update():
            return self.collection.find_one_and_update(
                {"_id": object_id, "version": expected_version},
                {"$set": update_dict, "$inc": {"version": 1}},
                return_document=ReturnDocument.AFTER,
            )

        result = await asyncio.to_thread(_update)
        return self.to_model(result)
