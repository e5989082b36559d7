"""
Statistics Aggregator - forum-wide totals for dashboards.
"""

from sqlalchemy import func, select, union
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.forum import ForumReply, ForumTopic, TopicStatus
from app.modules.forum.activity import ActivityLog
from app.modules.forum.types import ForumStats


class StatisticsAggregator:
    """
    Computes totals by scanning live rows, so results always agree with
    the data rather than with denormalized counters.

    Active users and top contributors are part of the result shape but are
    not computed here and stay zero/empty.
    """

    def __init__(self, db: AsyncSession, activity: ActivityLog) -> None:
        self.db = db
        self.activity = activity

    async def forum_stats(self) -> ForumStats:
        """Totals, popular published topics and recent activity."""
        total_topics = await self._scalar(select(func.count(ForumTopic.id)))
        total_replies = await self._scalar(select(func.count(ForumReply.id)))
        total_views = await self._scalar(
            select(func.coalesce(func.sum(ForumTopic.view_count), 0))
        )

        authors = union(
            select(ForumTopic.author_id), select(ForumReply.author_id)
        ).subquery()
        total_users = await self._scalar(select(func.count()).select_from(authors))

        popular = await self.db.execute(
            select(ForumTopic)
            .where(ForumTopic.status == TopicStatus.PUBLISHED)
            .order_by(ForumTopic.view_count.desc(), ForumTopic.id.asc())
            .limit(settings.forum_popular_topics_limit)
            .execution_options(populate_existing=True)
        )

        return ForumStats(
            total_topics=total_topics,
            total_replies=total_replies,
            total_users=total_users,
            total_views=total_views,
            popular_topics=list(popular.scalars().all()),
            recent_activity=await self.activity.recent(
                settings.forum_recent_activity_limit
            ),
        )

    async def _scalar(self, query) -> int:
        result = await self.db.execute(query)
        return int(result.scalar_one() or 0)
