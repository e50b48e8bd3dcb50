"""
Progress store adapter - per-(user, lecture) workflow records.
"""

import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.errors import storage_errors
from src.kernel.models.progress import LectureProgress, ProgressStatus


class ProgressStore:
    """Reads and writes LectureProgress rows. Storage failures surface as DatabaseError."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_progress(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
    ) -> Optional[LectureProgress]:
        query = select(LectureProgress).where(
            LectureProgress.user_id == user_id,
            LectureProgress.lecture_id == lecture_id,
        )
        with storage_errors("load progress", user_id=user_id, lecture_id=lecture_id):
            result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_progress(
        self,
        user_id: uuid.UUID,
        lecture_ids: Optional[Iterable[uuid.UUID]] = None,
    ) -> List[LectureProgress]:
        """
        One snapshot of a user's progress records, optionally restricted to
        `lecture_ids`. An empty id list short-circuits to no rows.
        """
        query = select(LectureProgress).where(LectureProgress.user_id == user_id)
        if lecture_ids is not None:
            ids = list(set(lecture_ids))
            if not ids:
                return []
            query = query.where(LectureProgress.lecture_id.in_(ids))
        query = query.order_by(LectureProgress.updated_at.desc(), LectureProgress.id)
        with storage_errors("list progress", user_id=user_id):
            result = await self.session.execute(query)
        return list(result.scalars().all())

    async def upsert_progress(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        status: ProgressStatus,
        last_viewed: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
        last_mastery_score: Optional[float] = None,
    ) -> LectureProgress:
        """
        Create the record or overwrite its status. Timestamp/score arguments
        only overwrite when given.
        """
        record = await self.get_progress(user_id, lecture_id)
        status_value = ProgressStatus(status).value
        with storage_errors("save progress", user_id=user_id, lecture_id=lecture_id):
            if record is None:
                record = LectureProgress(
                    user_id=user_id,
                    lecture_id=lecture_id,
                    status=status_value,
                )
                self.session.add(record)
            else:
                record.status = status_value
            if last_viewed is not None:
                record.last_viewed = last_viewed
            if completed_at is not None:
                record.completed_at = completed_at
            if last_mastery_score is not None:
                record.last_mastery_score = last_mastery_score
            await self.session.flush()
            await self.session.refresh(record)
        return record
