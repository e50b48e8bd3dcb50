"""
Prerequisite repository - CRUD over lecture prerequisite edges.
"""

import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.errors import storage_errors
from src.kernel.models.lecture import LecturePrerequisite
from src.logging_config import get_logger

logger = get_logger(__name__)

# Arbitrary application-wide key for pg_advisory_xact_lock
GRAPH_WRITE_LOCK_KEY = 0x1EC7_0E00


class PrerequisiteRepository:
    """Thin storage wrapper for `lecture_prerequisites`."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_edge(self, edge_id: uuid.UUID) -> Optional[LecturePrerequisite]:
        with storage_errors("load prerequisite", edge_id=edge_id):
            result = await self.session.execute(
                select(LecturePrerequisite).where(LecturePrerequisite.id == edge_id)
            )
        return result.scalar_one_or_none()

    async def get_edge_by_pair(
        self,
        lecture_id: uuid.UUID,
        prerequisite_lecture_id: uuid.UUID,
    ) -> Optional[LecturePrerequisite]:
        query = select(LecturePrerequisite).where(
            LecturePrerequisite.lecture_id == lecture_id,
            LecturePrerequisite.prerequisite_lecture_id == prerequisite_lecture_id,
        )
        with storage_errors("load prerequisite", lecture_id=lecture_id):
            result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_edges(
        self,
        lecture_id: Optional[uuid.UUID] = None,
        prerequisite_lecture_id: Optional[uuid.UUID] = None,
    ) -> List[LecturePrerequisite]:
        """
        Edges filtered by either endpoint. Ordered required first, then by
        importance (highest first), then by creation.
        """
        query = select(LecturePrerequisite)
        if lecture_id is not None:
            query = query.where(LecturePrerequisite.lecture_id == lecture_id)
        if prerequisite_lecture_id is not None:
            query = query.where(LecturePrerequisite.prerequisite_lecture_id == prerequisite_lecture_id)
        query = query.order_by(
            LecturePrerequisite.is_required.desc(),
            LecturePrerequisite.importance_level.desc(),
            LecturePrerequisite.created_at,
            LecturePrerequisite.id,
        )
        with storage_errors("list prerequisites", lecture_id=lecture_id):
            result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_edges_for_lectures(
        self,
        lecture_ids: Iterable[uuid.UUID],
    ) -> Dict[uuid.UUID, List[LecturePrerequisite]]:
        """All edges of the given lectures in one query, grouped by lecture_id."""
        ids = list(set(lecture_ids))
        grouped: Dict[uuid.UUID, List[LecturePrerequisite]] = {i: [] for i in ids}
        if not ids:
            return grouped
        with storage_errors("list prerequisites"):
            result = await self.session.execute(
                select(LecturePrerequisite).where(LecturePrerequisite.lecture_id.in_(ids))
            )
        for edge in result.scalars().all():
            grouped[edge.lecture_id].append(edge)
        return grouped

    async def prerequisite_ids_of(self, lecture_id: uuid.UUID) -> List[uuid.UUID]:
        """Outgoing neighbours of one node, in a stable order."""
        query = (
            select(LecturePrerequisite.prerequisite_lecture_id)
            .where(LecturePrerequisite.lecture_id == lecture_id)
            .order_by(LecturePrerequisite.prerequisite_lecture_id)
        )
        with storage_errors("walk prerequisite graph", lecture_id=lecture_id):
            result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_all_edges(self) -> List[LecturePrerequisite]:
        with storage_errors("list prerequisites"):
            result = await self.session.execute(
                select(LecturePrerequisite).order_by(
                    LecturePrerequisite.lecture_id,
                    LecturePrerequisite.prerequisite_lecture_id,
                )
            )
        return list(result.scalars().all())

    async def create_edge(
        self,
        lecture_id: uuid.UUID,
        prerequisite_lecture_id: uuid.UUID,
        is_required: bool,
        importance_level: int,
    ) -> LecturePrerequisite:
        """
        Insert and flush. An IntegrityError (duplicate pair, self-loop) is
        propagated unchanged.
        """
        edge = LecturePrerequisite(
            lecture_id=lecture_id,
            prerequisite_lecture_id=prerequisite_lecture_id,
            is_required=is_required,
            importance_level=importance_level,
        )
        with storage_errors("create prerequisite", lecture_id=lecture_id):
            self.session.add(edge)
            await self.session.flush()
            await self.session.refresh(edge)
        return edge

    async def update_edge(
        self,
        edge: LecturePrerequisite,
        is_required: Optional[bool] = None,
        importance_level: Optional[int] = None,
    ) -> LecturePrerequisite:
        if is_required is not None:
            edge.is_required = is_required
        if importance_level is not None:
            edge.importance_level = importance_level
        with storage_errors("update prerequisite", edge_id=edge.id):
            await self.session.flush()
            await self.session.refresh(edge)
        return edge

    async def delete_edge(self, edge_id: uuid.UUID) -> None:
        with storage_errors("delete prerequisite", edge_id=edge_id):
            await self.session.execute(
                delete(LecturePrerequisite).where(LecturePrerequisite.id == edge_id)
            )

    async def lock_graph_for_write(self) -> None:
        """
        Serialise graph mutations for the rest of the transaction.

        PostgreSQL only: takes a transaction-scoped advisory lock. SQLite
        already serialises writers on the database file.
        """
        bind = self.session.get_bind()
        if bind.dialect.name != "postgresql":
            return
        with storage_errors("lock prerequisite graph"):
            await self.session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": GRAPH_WRITE_LOCK_KEY},
            )
        logger.debug("Acquired prerequisite graph write lock")
