"""
Reply Thread Manager - reply lifecycle and threading.
"""

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models.forum import (
    ActivityType,
    ForumCategory,
    ForumLike,
    ForumReply,
    ForumTopic,
    NotificationType,
    ReplyStatus,
    utcnow,
)
from app.modules.forum.activity import ActivityLog
from app.modules.forum.categories import CategoryRegistry
from app.modules.forum.counters import apply_counter_delta
from app.modules.forum.notifications import NotificationDispatcher
from app.modules.forum.types import AuthorSnapshot, ReplyDraft

MODERATION_NOTIFICATIONS = {
    ReplyStatus.APPROVED: (NotificationType.REPLY_APPROVED, "Reply Approved"),
    ReplyStatus.PUBLISHED: (NotificationType.REPLY_APPROVED, "Reply Approved"),
    ReplyStatus.REJECTED: (NotificationType.REPLY_REJECTED, "Reply Rejected"),
}


class ReplyThreadManager:
    """
    Service for replies inside topics.

    Usage:
        replies = ReplyThreadManager(db_session, categories, activity, notifier)
        reply = await replies.create_reply(draft, author)
    """

    def __init__(
        self,
        db: AsyncSession,
        categories: CategoryRegistry,
        activity: ActivityLog,
        notifier: NotificationDispatcher,
    ) -> None:
        """Initialize manager with session and collaborators."""
        self.db = db
        self.categories = categories
        self.activity = activity
        self.notifier = notifier

    async def get_reply(self, reply_id: int) -> ForumReply:
        """Get reply by ID. Raises NotFoundError."""
        query = (
            select(ForumReply)
            .where(ForumReply.id == reply_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        reply = result.scalar_one_or_none()
        if reply is None:
            raise NotFoundError("Reply", reply_id)
        return reply

    async def create_reply(
        self,
        draft: ReplyDraft,
        author: AuthorSnapshot,
    ) -> ForumReply:
        """
        Create new reply in topic.

        Bumps the topic's reply count and last-reply pointer and the
        category's reply total, then records activity and tells the
        topic author.

        Args:
            draft: Reply content and threading info
            author: Author snapshot

        Returns:
            Created reply
        """
        if not draft.content or not draft.content.strip():
            raise ValidationError("Reply content is required")

        topic = await self.db.get(ForumTopic, draft.topic_id)
        if topic is None:
            raise NotFoundError("Topic", draft.topic_id)
        if topic.is_locked:
            raise PermissionDeniedError(f"Topic {topic.id} is locked")

        if draft.parent_reply_id is not None:
            parent = await self.db.get(ForumReply, draft.parent_reply_id)
            if parent is None or parent.topic_id != topic.id:
                raise ValidationError(
                    "Parent reply must belong to the same topic",
                    details={"parent_reply_id": draft.parent_reply_id},
                )

        category = await self.db.get(ForumCategory, topic.category_id)
        requires_approval = bool(category and category.requires_approval)

        reply = ForumReply(
            topic_id=topic.id,
            parent_reply_id=draft.parent_reply_id,
            author_id=author.id,
            author_name=author.name,
            author_email=author.email,
            author_avatar=author.avatar,
            content=draft.content,
            attachments=list(draft.attachments),
            status=(
                ReplyStatus.PENDING_APPROVAL
                if requires_approval
                else ReplyStatus.PUBLISHED
            ),
            is_accepted_answer=False,
            like_count=0,
            like_entries=[],
        )
        self.db.add(reply)
        await self.db.flush()

        # Update topic stats
        await self.db.execute(
            update(ForumTopic)
            .where(ForumTopic.id == topic.id)
            .values(
                reply_count=ForumTopic.reply_count + 1,
                last_reply_id=reply.id,
                last_reply_at=reply.created_at,
                last_reply_by=author.name,
            )
        )

        # Update category stats
        await self.categories.update_counters(topic.category_id, "reply_count", 1)

        logger.info(f"Created reply {reply.id} for topic {topic.id}")

        await self.activity.append(
            type=ActivityType.REPLY_CREATED,
            user_id=author.id,
            user_name=author.name,
            topic_id=topic.id,
            topic_title=topic.title,
            reply_id=reply.id,
            category_id=topic.category_id,
            description="Replied to topic",
        )
        await self.notifier.dispatch(
            user_id=topic.author_id,
            type=NotificationType.NEW_REPLY,
            triggered_by=author.id,
            triggered_by_name=author.name,
            title="New Reply",
            message=f"{author.name} replied to your topic: {topic.title}",
            topic_id=topic.id,
            reply_id=reply.id,
        )

        return reply

    async def update_reply(
        self,
        reply_id: int,
        content: str,
        attachments: list[dict] | None = None,
    ) -> ForumReply:
        """Edit reply content. Published replies become Edited."""
        if not content or not content.strip():
            raise ValidationError("Reply content is required")

        reply = await self.get_reply(reply_id)

        now = utcnow()
        reply.content = content
        if attachments is not None:
            reply.attachments = list(attachments)
        if reply.status in (ReplyStatus.PUBLISHED, ReplyStatus.EDITED):
            reply.status = ReplyStatus.EDITED
        reply.edited_at = now
        reply.updated_at = now

        await self.db.flush()
        return reply

    async def moderate_reply(
        self,
        reply_id: int,
        status: ReplyStatus,
        moderator_id: str,
    ) -> ForumReply:
        """Set reply status as a moderator and tell the author."""
        reply = await self.get_reply(reply_id)

        now = utcnow()
        reply.status = status
        reply.moderated_at = now
        reply.moderated_by = moderator_id
        reply.updated_at = now
        await self.db.flush()

        logger.info(f"Reply {reply.id} moderated to {status.value} by {moderator_id}")

        notification_type, title = MODERATION_NOTIFICATIONS.get(
            status, (NotificationType.MODERATOR_ACTION, "Moderator Action")
        )
        await self.notifier.dispatch(
            user_id=reply.author_id,
            type=notification_type,
            triggered_by=moderator_id,
            title=title,
            message=f"A moderator set your reply to {status.value}",
            topic_id=reply.topic_id,
            reply_id=reply.id,
        )
        return reply

    async def set_accepted_answer(self, reply_id: int, accepted: bool = True) -> ForumReply:
        """Flag or unflag a reply as the topic's accepted answer."""
        reply = await self.get_reply(reply_id)
        reply.is_accepted_answer = accepted
        reply.updated_at = utcnow()
        await self.db.flush()
        return reply

    async def delete_reply(self, reply_id: int) -> None:
        """
        Delete a single reply.

        Child replies are detached (their parent reference cleared) and the
        topic and category reply totals drop by one, clamped at zero.
        """
        reply = await self.get_reply(reply_id)
        topic = await self.db.get(ForumTopic, reply.topic_id)

        await self.db.execute(delete(ForumLike).where(ForumLike.reply_id == reply.id))
        await self.db.execute(
            update(ForumReply)
            .where(ForumReply.parent_reply_id == reply.id)
            .values(parent_reply_id=None)
        )
        await self.db.delete(reply)
        await self.db.flush()

        if topic is not None:
            await apply_counter_delta(
                self.db, ForumTopic, topic.id, "reply_count", -1
            )
            await self.categories.update_counters(topic.category_id, "reply_count", -1)

        logger.info(f"Deleted reply {reply_id}")

    async def delete_replies_for_topic(self, topic_id: int) -> int:
        """
        Remove every reply of a topic, with their likes.

        Used by topic deletion: no counters are decremented here.

        Returns:
            Number of replies removed
        """
        reply_ids = select(ForumReply.id).where(ForumReply.topic_id == topic_id)

        count_result = await self.db.execute(
            select(func.count()).select_from(ForumReply).where(
                ForumReply.topic_id == topic_id
            )
        )
        count = count_result.scalar_one()

        await self.db.execute(
            delete(ForumLike)
            .where(ForumLike.reply_id.in_(reply_ids))
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(ForumReply)
            .where(ForumReply.topic_id == topic_id)
            .execution_options(synchronize_session=False)
        )

        logger.debug(f"Removed {count} replies of topic {topic_id}")
        return count
