"""
Base repository with common CRUD operations.
"""

import asyncio
from typing import Generic, List, Optional, Type, TypeVar

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

T = TypeVar("T", bound=BaseModel)


def to_object_id(entity_id: str | ObjectId) -> Optional[ObjectId]:
    """
    Convert an id to ObjectId.

    Returns:
        ObjectId, or None when the string is not a valid ObjectId
    """
    if isinstance(entity_id, ObjectId):
        return entity_id
    try:
        return ObjectId(entity_id)
    except (InvalidId, TypeError):
        return None


class BaseRepository(Generic[T]):
    """
    Base repository providing common CRUD operations.

    Type parameter T should be a Pydantic model. Blocking pymongo calls are
    pushed to a worker thread so callers can await them.
    """

    def __init__(self, database: Database, collection_name: str, model_class: Type[T]):
        """
        Initialize repository.

        Args:
            database: MongoDB database instance
            collection_name: Name of the collection
            model_class: Pydantic model class for this repository
        """
        self.database = database
        self.collection: Collection = database[collection_name]
        self.model_class = model_class

    def to_document(self, entity: T) -> dict:
        """Serialize entity for insertion, letting MongoDB assign _id."""
        return entity.model_dump(by_alias=True, exclude={"id"})

    def to_model(self, doc: Optional[dict]) -> Optional[T]:
        return self.model_class(**doc) if doc else None

    async def create(self, entity: T) -> T:
        """
        Create a new document.

        Args:
            entity: Entity to create

        Returns:
            Created entity with _id populated
        """
        entity_dict = self.to_document(entity)
        result = await asyncio.to_thread(self.collection.insert_one, entity_dict)
        entity_dict["_id"] = result.inserted_id
        return self.model_class(**entity_dict)

    async def find_by_id(self, entity_id: str | ObjectId) -> Optional[T]:
        """
        Find document by ID.

        Args:
            entity_id: Document ID (string or ObjectId)

        Returns:
            Entity if found, None otherwise (including malformed ids)
        """
        object_id = to_object_id(entity_id)
        if object_id is None:
            return None

        doc = await asyncio.to_thread(self.collection.find_one, {"_id": object_id})
        return self.to_model(doc)

    async def find_one(self, filter_dict: dict) -> Optional[T]:
        """
        Find single document matching filter.

        Args:
            filter_dict: MongoDB filter query

        Returns:
            Entity if found, None otherwise
        """
        doc = await asyncio.to_thread(self.collection.find_one, filter_dict)
        return self.to_model(doc)

    async def find_many(
        self,
        filter_dict: dict,
        skip: int = 0,
        limit: int = 100,
        sort: Optional[List[tuple]] = None,
    ) -> List[T]:
        """
        Find multiple documents matching filter.

        Args:
            filter_dict: MongoDB filter query
            skip: Number of documents to skip
            limit: Maximum number of documents to return
            sort: List of (field, direction) tuples for sorting

        Returns:
            List of entities
        """
        def _find():
            cursor = self.collection.find(filter_dict)
            if sort:
                cursor = cursor.sort(sort)
            cursor = cursor.skip(skip).limit(limit)
            return [self.model_class(**doc) for doc in cursor]

        return await asyncio.to_thread(_find)

    async def update_one(self, filter_dict: dict, update_dict: dict) -> Optional[T]:
        """
        Update single document matching filter.

        Args:
            filter_dict: MongoDB filter query
            update_dict: Fields to update (uses $set operator)

        Returns:
            Updated entity if found, None otherwise
        """
        def _update():
            return self.collection.find_one_and_update(
                filter_dict,
                {"$set": update_dict},
                return_document=ReturnDocument.AFTER,
            )

        result = await asyncio.to_thread(_update)
        return self.to_model(result)
