"""
Topic Lifecycle Manager - topic creation, moderation and deletion.
"""

from typing import Any

from loguru import logger
from slugify import slugify
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models.forum import (
    ActivityType,
    ForumLike,
    ForumTopic,
    NotificationType,
    TopicPriority,
    TopicStatus,
    utcnow,
)
from app.modules.forum.activity import ActivityLog
from app.modules.forum.categories import CategoryRegistry
from app.modules.forum.notifications import NotificationDispatcher
from app.modules.forum.replies import ReplyThreadManager
from app.modules.forum.types import AuthorSnapshot, TopicDraft

EDITABLE_FIELDS = {
    "title",
    "content",
    "tags",
    "priority",
    "attachments",
    "status",
    "is_pinned",
    "is_locked",
}

MODERATION_NOTIFICATIONS = {
    TopicStatus.APPROVED: (NotificationType.TOPIC_APPROVED, "Topic Approved"),
    TopicStatus.PUBLISHED: (NotificationType.TOPIC_APPROVED, "Topic Approved"),
    TopicStatus.REJECTED: (NotificationType.TOPIC_REJECTED, "Topic Rejected"),
}


class TopicLifecycleManager:
    """
    Service for forum topics.

    Usage:
        topics = TopicLifecycleManager(db, categories, replies, activity, notifier)
        topic = await topics.create_topic(draft, author)
    """

    def __init__(
        self,
        db: AsyncSession,
        categories: CategoryRegistry,
        replies: ReplyThreadManager,
        activity: ActivityLog,
        notifier: NotificationDispatcher,
    ) -> None:
        """Initialize manager with session and collaborators."""
        self.db = db
        self.categories = categories
        self.replies = replies
        self.activity = activity
        self.notifier = notifier

    async def get_topic(self, topic_id: int) -> ForumTopic:
        """Get topic by ID. Raises NotFoundError."""
        query = (
            select(ForumTopic)
            .where(ForumTopic.id == topic_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        topic = result.scalar_one_or_none()
        if topic is None:
            raise NotFoundError("Topic", topic_id)
        return topic

    async def get_topic_by_slug(self, slug: str) -> ForumTopic:
        """Get topic by slug. Raises NotFoundError."""
        query = (
            select(ForumTopic)
            .where(ForumTopic.slug == slug)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        topic = result.scalar_one_or_none()
        if topic is None:
            raise NotFoundError("Topic", slug)
        return topic

    async def create_topic(
        self,
        draft: TopicDraft,
        author: AuthorSnapshot,
        author_roles: list[str] | None = None,
    ) -> ForumTopic:
        """
        Create new forum topic.

        Args:
            draft: Topic fields
            author: Author snapshot
            author_roles: Caller-resolved roles, checked against the
                category's allowed roles when given

        Returns:
            Created topic
        """
        missing = [
            name
            for name, value in (
                ("title", draft.title),
                ("content", draft.content),
                ("category_id", draft.category_id),
            )
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise ValidationError(
                "Missing required topic fields", details={"fields": missing}
            )

        category = await self.categories.get_category(draft.category_id)
        if not category.is_active:
            raise ValidationError(f"Category {category.id} is inactive")

        if author_roles is not None and category.allowed_roles:
            if not set(author_roles) & set(category.allowed_roles):
                raise PermissionDeniedError(
                    f"Roles {sorted(author_roles)} cannot post in {category.name}"
                )

        if draft.save_as_draft:
            status = TopicStatus.DRAFT
        elif category.requires_approval:
            status = TopicStatus.PENDING_APPROVAL
        else:
            status = TopicStatus.PUBLISHED

        topic = ForumTopic(
            category_id=category.id,
            category_snapshot=category.snapshot(),
            author_id=author.id,
            author_name=author.name,
            author_email=author.email,
            author_avatar=author.avatar,
            title=draft.title.strip(),
            slug=await self._unique_slug(draft.title),
            content=draft.content,
            tags=list(draft.tags),
            priority=draft.priority,
            attachments=list(draft.attachments),
            status=status,
            is_pinned=False,
            is_locked=False,
            view_count=0,
            reply_count=0,
            like_count=0,
            like_entries=[],
        )
        self.db.add(topic)
        await self.db.flush()

        # Update category stats
        await self.categories.update_counters(category.id, "topic_count", 1)
        await self.categories.touch_last_topic(category.id, topic.created_at, author.name)

        logger.info(f"Created forum topic: {topic.title}")

        await self.activity.append(
            type=ActivityType.TOPIC_CREATED,
            user_id=author.id,
            user_name=author.name,
            topic_id=topic.id,
            topic_title=topic.title,
            category_id=category.id,
            category_name=category.name,
            description=f"Created new topic: {topic.title}",
        )

        if status == TopicStatus.PENDING_APPROVAL:
            for moderator_id in category.moderators:
                await self.notifier.dispatch(
                    user_id=moderator_id,
                    type=NotificationType.NEW_TOPIC,
                    triggered_by=author.id,
                    triggered_by_name=author.name,
                    title="Topic Awaiting Approval",
                    message=f"{author.name} posted in {category.name}: {topic.title}",
                    topic_id=topic.id,
                )

        return topic

    async def _unique_slug(self, title: str) -> str:
        base_slug = slugify(title)[:200] or "topic"
        slug = base_slug

        counter = 1
        while True:
            existing = await self.db.execute(
                select(ForumTopic.id).where(ForumTopic.slug == slug)
            )
            if existing.scalar_one_or_none() is None:
                return slug
            slug = f"{base_slug}-{counter}"
            counter += 1

    async def update_topic(
        self,
        topic_id: int,
        changes: dict[str, Any],
        actor: AuthorSnapshot | None = None,
    ) -> ForumTopic:
        """
        Merge editable fields into the topic and refresh updated_at.

        Status changes here are unguarded, like moderate_topic. Pinning or
        locking a topic is recorded in the activity log when ``actor`` is
        given.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                "Fields cannot be updated", details={"fields": sorted(unknown)}
            )
        nulls = sorted(key for key, value in changes.items() if value is None)
        if nulls:
            raise ValidationError("Fields cannot be null", details={"fields": nulls})
        for field in ("title", "content"):
            if field in changes and not str(changes[field]).strip():
                raise ValidationError(f"Topic {field} cannot be empty")

        changes = dict(changes)
        try:
            if "status" in changes:
                changes["status"] = TopicStatus(changes["status"])
            if "priority" in changes:
                changes["priority"] = TopicPriority(changes["priority"])
        except ValueError as e:
            raise ValidationError(str(e)) from e

        topic = await self.get_topic(topic_id)
        pinned_now = changes.get("is_pinned") is True and not topic.is_pinned
        locked_now = changes.get("is_locked") is True and not topic.is_locked

        for key, value in changes.items():
            setattr(topic, key, value)
        topic.updated_at = utcnow()
        await self.db.flush()

        logger.info(f"Updated topic {topic.id}: {sorted(changes)}")

        if actor is not None:
            if pinned_now:
                await self.activity.append(
                    type=ActivityType.TOPIC_PINNED,
                    user_id=actor.id,
                    user_name=actor.name,
                    topic_id=topic.id,
                    topic_title=topic.title,
                    category_id=topic.category_id,
                    description=f"Pinned topic: {topic.title}",
                )
            if locked_now:
                await self.activity.append(
                    type=ActivityType.TOPIC_LOCKED,
                    user_id=actor.id,
                    user_name=actor.name,
                    topic_id=topic.id,
                    topic_title=topic.title,
                    category_id=topic.category_id,
                    description=f"Locked topic: {topic.title}",
                )

        return topic

    async def moderate_topic(
        self,
        topic_id: int,
        status: TopicStatus,
        moderator_id: str,
    ) -> ForumTopic:
        """Set topic status as a moderator and tell the author."""
        topic = await self.get_topic(topic_id)

        now = utcnow()
        topic.status = status
        topic.moderated_at = now
        topic.moderated_by = moderator_id
        topic.updated_at = now
        await self.db.flush()

        logger.info(f"Topic {topic.id} moderated to {status.value} by {moderator_id}")

        notification_type, title = MODERATION_NOTIFICATIONS.get(
            status, (NotificationType.MODERATOR_ACTION, "Moderator Action")
        )
        await self.notifier.dispatch(
            user_id=topic.author_id,
            type=notification_type,
            triggered_by=moderator_id,
            title=title,
            message=f"A moderator set your topic '{topic.title}' to {status.value}",
            topic_id=topic.id,
        )
        return topic

    async def delete_topic(self, topic_id: int) -> None:
        """
        Delete a topic and all of its replies.

        The category topic total drops by one. Cascaded replies are not
        subtracted from the category reply total unless
        forum_reconcile_cascade_reply_counts is enabled.
        """
        topic = await self.get_topic(topic_id)
        category_id = topic.category_id

        removed_replies = await self.replies.delete_replies_for_topic(topic.id)

        await self.categories.update_counters(category_id, "topic_count", -1)
        if settings.forum_reconcile_cascade_reply_counts and removed_replies:
            await self.categories.update_counters(
                category_id, "reply_count", -removed_replies
            )

        await self.db.execute(delete(ForumLike).where(ForumLike.topic_id == topic.id))
        await self.db.delete(topic)
        await self.db.flush()

        logger.info(f"Deleted topic {topic_id} with {removed_replies} replies")
