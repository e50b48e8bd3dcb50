"""
Lecture store adapter - key-based access to the lecture catalogue.
"""

import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.errors import storage_errors
from src.kernel.models.lecture import Lecture


class LectureStore:
    """Reads and creates lectures. Every storage failure surfaces as DatabaseError."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lecture_exists(self, lecture_id: uuid.UUID) -> bool:
        with storage_errors("check lecture", lecture_id=lecture_id):
            result = await self.session.execute(
                select(exists().where(Lecture.id == lecture_id))
            )
        return bool(result.scalar())

    async def get_lecture(self, lecture_id: uuid.UUID) -> Optional[Lecture]:
        with storage_errors("load lecture", lecture_id=lecture_id):
            result = await self.session.execute(
                select(Lecture).where(Lecture.id == lecture_id)
            )
        return result.scalar_one_or_none()

    async def get_lectures(self, lecture_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Lecture]:
        """Batch lookup; ids that do not exist are simply absent from the result."""
        ids = list(set(lecture_ids))
        if not ids:
            return {}
        with storage_errors("load lectures"):
            result = await self.session.execute(select(Lecture).where(Lecture.id.in_(ids)))
        return {lecture.id: lecture for lecture in result.scalars().all()}

    async def list_lectures(self, category: Optional[str] = None) -> List[Lecture]:
        """All lectures (optionally one category), ordered by category then order."""
        query = select(Lecture)
        if category:
            query = query.where(Lecture.category == category)
        query = query.order_by(Lecture.category, Lecture.order, Lecture.id)
        with storage_errors("list lectures", category=category):
            result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_by_position(self, category: str, order: int) -> Optional[Lecture]:
        with storage_errors("load lecture", category=category, order=order):
            result = await self.session.execute(
                select(Lecture).where(Lecture.category == category, Lecture.order == order)
            )
        return result.scalar_one_or_none()

    async def create_lecture(
        self,
        title: str,
        category: str,
        order: int,
        description: str = "",
        content_url: Optional[str] = None,
    ) -> Lecture:
        lecture = Lecture(
            title=title,
            category=category,
            order=order,
            description=description,
            content_url=content_url,
        )
        with storage_errors("create lecture", category=category, order=order):
            self.session.add(lecture)
            await self.session.flush()
            await self.session.refresh(lecture)
        return lecture
