"""
Credential repository implementation.
"""

from datetime import datetime
from typing import Optional

from pymongo.client_session import ClientSession
from pymongo.database import Database

from models.credential import Credential
from repositories.base import BaseRepository, to_object_id


class CredentialRepository(BaseRepository[Credential]):
    """Repository for Credential entities."""

    def __init__(self, database: Database):
        super().__init__(database, "credentials", Credential)

    async def find_by_secret(self, secret: str) -> Optional[Credential]:
        """
        Find credential by its secret.

        Args:
            secret: Bearer token presented by a client

        Returns:
            Credential if found, None otherwise
        """
        return await self.find_one({"secret": secret})

    async def find_active_for_owner(self, owner_identity_id: str) -> Optional[Credential]:
        """
        Find the active credential of an identity.

        Args:
            owner_identity_id: Identity ID

        Returns:
            Active credential if any, None otherwise
        """
        return await self.find_one({"owner_identity_id": owner_identity_id, "active": True})

    async def deactivate(self, credential_id: str, revoked_at: datetime) -> Optional[Credential]:
        """
        Mark a credential inactive.

        Args:
            credential_id: Credential ID
            revoked_at: Revocation instant

        Returns:
            Updated credential if found, None otherwise
        """
        object_id = to_object_id(credential_id)
        if object_id is None:
            return None
        return await self.update_one(
            {"_id": object_id}, {"active": False, "revoked_at": revoked_at}
        )

    def replace_active(
        self, credential: Credential, session: Optional[ClientSession] = None
    ) -> Credential:
        """
        Deactivate the owner's active credentials and insert a new one.

        Runs as the body of a transaction callback, so it is synchronous and
        every write carries the transaction's session.

        Args:
            credential: New active credential; issued_at doubles as revoked_at
            session: Transaction session

        Returns:
            Inserted credential with _id populated
        """
        self.collection.update_many(
            {"owner_identity_id": credential.owner_identity_id, "active": True},
            {"$set": {"active": False, "revoked_at": credential.issued_at}},
            session=session,
        )
        entity_dict = self.to_document(credential)
        result = self.collection.insert_one(entity_dict, session=session)
        entity_dict["_id"] = result.inserted_id
        return self.model_class(**entity_dict)
