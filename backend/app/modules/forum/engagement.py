"""
Engagement Tracker - likes and views on topics and replies.
"""

from loguru import logger
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.forum import (
    ActivityType,
    ForumLike,
    ForumReply,
    ForumTopic,
    NotificationType,
)
from app.modules.forum.activity import ActivityLog
from app.modules.forum.counters import apply_counter_delta
from app.modules.forum.notifications import NotificationDispatcher
from app.modules.forum.types import ToggleResult


class EngagementTracker:
    """
    Like toggling and view counting.

    Membership changes are single INSERT/DELETE statements on the
    forum_likes table, never a read-modify-write of a copied set, so
    concurrent togglers for different users cannot lose each other's
    change. The like_count column moves by the same atomic delta.

    Usage:
        engagement = EngagementTracker(db_session, notifier, activity)
        result = await engagement.toggle_topic_like(topic_id, "u1")
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationDispatcher,
        activity: ActivityLog,
    ) -> None:
        """Initialize tracker with session and side-effect collaborators."""
        self.db = db
        self.notifier = notifier
        self.activity = activity

    # ==================== Views ====================

    async def increment_view_count(self, topic_id: int) -> None:
        """Increment topic view count. No per-viewer dedup."""
        result = await self.db.execute(
            update(ForumTopic)
            .where(ForumTopic.id == topic_id)
            .values(view_count=ForumTopic.view_count + 1)
        )
        if result.rowcount == 0:
            raise NotFoundError("Topic", topic_id)

    # ==================== Likes ====================

    async def toggle_topic_like(self, topic_id: int, user_id: str) -> ToggleResult:
        """Like the topic, or remove the like if the user already liked it."""
        topic = await self.db.get(ForumTopic, topic_id)
        if topic is None:
            raise NotFoundError("Topic", topic_id)

        liked, changed = await self._toggle(
            ForumTopic, ForumLike.topic_id, topic_id, user_id
        )
        await self.db.refresh(topic, attribute_names=["like_count", "like_entries"])

        if liked and changed:
            await self.notifier.dispatch(
                user_id=topic.author_id,
                type=NotificationType.TOPIC_LIKED,
                triggered_by=user_id,
                title="Topic Liked",
                message=f"Someone liked your topic: {topic.title}",
                topic_id=topic.id,
            )
            await self.activity.append(
                type=ActivityType.TOPIC_LIKED,
                user_id=user_id,
                topic_id=topic.id,
                topic_title=topic.title,
                category_id=topic.category_id,
                description=f"Liked topic: {topic.title}",
            )

        return ToggleResult(liked=liked, like_count=topic.like_count)

    async def toggle_reply_like(self, reply_id: int, user_id: str) -> ToggleResult:
        """Like the reply, or remove the like if the user already liked it."""
        reply = await self.db.get(ForumReply, reply_id)
        if reply is None:
            raise NotFoundError("Reply", reply_id)

        liked, changed = await self._toggle(
            ForumReply, ForumLike.reply_id, reply_id, user_id
        )
        await self.db.refresh(reply, attribute_names=["like_count", "like_entries"])

        if liked and changed:
            await self.notifier.dispatch(
                user_id=reply.author_id,
                type=NotificationType.REPLY_LIKED,
                triggered_by=user_id,
                title="Reply Liked",
                message="Someone liked your reply",
                topic_id=reply.topic_id,
                reply_id=reply.id,
            )
            await self.activity.append(
                type=ActivityType.REPLY_LIKED,
                user_id=user_id,
                topic_id=reply.topic_id,
                reply_id=reply.id,
                description="Liked a reply",
            )

        return ToggleResult(liked=liked, like_count=reply.like_count)

    async def get_topic_likes(self, topic_id: int) -> set[str]:
        """User IDs currently liking the topic."""
        return await self._members(ForumLike.topic_id, topic_id)

    async def get_reply_likes(self, reply_id: int) -> set[str]:
        """User IDs currently liking the reply."""
        return await self._members(ForumLike.reply_id, reply_id)

    async def _members(self, target_column, target_id: int) -> set[str]:
        result = await self.db.execute(
            select(ForumLike.user_id).where(target_column == target_id)
        )
        return set(result.scalars().all())

    async def _toggle(
        self,
        model: type,
        target_column,
        target_id: int,
        user_id: str,
    ) -> tuple[bool, bool]:
        """
        Flip membership of ``user_id`` for one target.

        Returns:
            (liked, changed): whether the user now likes the target and
            whether this call is what changed it
        """
        existing = await self.db.execute(
            select(ForumLike.id).where(
                target_column == target_id,
                ForumLike.user_id == user_id,
            )
        )

        if existing.scalar_one_or_none() is not None:
            removed = await self.db.execute(
                delete(ForumLike).where(
                    target_column == target_id,
                    ForumLike.user_id == user_id,
                )
            )
            if removed.rowcount:
                await apply_counter_delta(
                    self.db, model, target_id, "like_count", -removed.rowcount
                )
            logger.debug(f"{user_id} unliked {model.__name__} {target_id}")
            return False, True

        try:
            async with self.db.begin_nested():
                await self.db.execute(
                    insert(ForumLike).values(
                        {target_column.key: target_id, "user_id": user_id}
                    )
                )
        except IntegrityError:
            # A concurrent toggle by the same user added the row first
            logger.debug(f"{user_id} already likes {model.__name__} {target_id}")
            return True, False

        await apply_counter_delta(self.db, model, target_id, "like_count", 1)
        logger.debug(f"{user_id} liked {model.__name__} {target_id}")
        return True, True
