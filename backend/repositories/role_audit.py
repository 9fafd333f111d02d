"""
Role audit repository implementation.
"""

from typing import List

from pymongo import DESCENDING
from pymongo.database import Database

from models.role_audit import RoleAuditEntry
from repositories.base import BaseRepository


class RoleAuditRepository(BaseRepository[RoleAuditEntry]):
    """Repository for RoleAuditEntry entities."""

    def __init__(self, database: Database):
        super().__init__(database, "role_audit", RoleAuditEntry)

    async def find_for_target(
        self, target_identity_id: str, skip: int = 0, limit: int = 100
    ) -> List[RoleAuditEntry]:
        """
        Role history of one identity, newest first.

        Args:
            target_identity_id: Identity whose roles changed
            skip: Number to skip
            limit: Maximum results

        Returns:
            List of audit entries
        """
        return await self.find_many(
            {"target_identity_id": target_identity_id},
            skip=skip,
            limit=limit,
            sort=[("recorded_at", DESCENDING)],
        )
