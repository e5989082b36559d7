"""
Activity Log - append-only audit trail of forum actions.
"""

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.forum import ActivityType, ForumActivity


class ActivityLog:
    """Records significant actions. Appending never raises."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def append(
        self,
        type: ActivityType,
        user_id: str,
        description: str,
        user_name: str | None = None,
        topic_id: int | None = None,
        topic_title: str | None = None,
        reply_id: int | None = None,
        category_id: int | None = None,
        category_name: str | None = None,
    ) -> ForumActivity | None:
        """Append an entry; failures are logged and swallowed."""
        activity = ForumActivity(
            type=type,
            user_id=user_id,
            user_name=user_name,
            topic_id=topic_id,
            topic_title=topic_title,
            reply_id=reply_id,
            category_id=category_id,
            category_name=category_name,
            description=description,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(activity)
        except Exception as e:
            logger.warning(f"Activity {type.value} by {user_id} not recorded: {e}")
            return None
        return activity

    async def recent(self, limit: int | None = None) -> list[ForumActivity]:
        """Most recent entries, newest first."""
        if limit is None:
            limit = settings.forum_recent_activity_limit
        query = (
            select(ForumActivity)
            .order_by(ForumActivity.timestamp.desc(), ForumActivity.id.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
