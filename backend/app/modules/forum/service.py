"""
Forum Service - single entry point over the forum components.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import translate_store_errors
from app.models.forum import (
    ForumActivity,
    ForumCategory,
    ForumNotification,
    ForumReply,
    ForumTopic,
    ReplyStatus,
    TopicStatus,
)
from app.modules.forum.activity import ActivityLog
from app.modules.forum.categories import CategoryRegistry
from app.modules.forum.engagement import EngagementTracker
from app.modules.forum.events import EventPublisher
from app.modules.forum.notifications import NotificationDispatcher
from app.modules.forum.queries import ForumQueryEngine
from app.modules.forum.replies import ReplyThreadManager
from app.modules.forum.stats import StatisticsAggregator
from app.modules.forum.topics import TopicLifecycleManager
from app.modules.forum.types import (
    AuthorSnapshot,
    ForumStats,
    Page,
    ReplyDraft,
    ToggleResult,
    TopicDraft,
    TopicFilters,
    TopicSort,
)


class ForumService:
    """
    Service for managing forum categories, topics, replies and engagement.

    All components share one session; the caller owns the transaction.
    Store failures surface as StoreError.

    Usage:
        forum = ForumService(db_session)
        topic = await forum.create_topic(draft, author)
        page = await forum.list_topics(sort_by=TopicSort.POPULAR)
    """

    def __init__(
        self,
        db: AsyncSession,
        publisher: EventPublisher | None = None,
    ) -> None:
        """Initialize forum service with database session."""
        self.db = db
        self.notifications = NotificationDispatcher(db, publisher)
        self.activity = ActivityLog(db)
        self.categories = CategoryRegistry(db)
        self.engagement = EngagementTracker(db, self.notifications, self.activity)
        self.replies = ReplyThreadManager(
            db, self.categories, self.activity, self.notifications
        )
        self.topics = TopicLifecycleManager(
            db, self.categories, self.replies, self.activity, self.notifications
        )
        self.queries = ForumQueryEngine(db)
        self.stats = StatisticsAggregator(db, self.activity)

    # ==================== Categories ====================

    @translate_store_errors
    async def get_categories(self, active_only: bool = True) -> list[ForumCategory]:
        return await self.categories.get_categories(active_only=active_only)

    @translate_store_errors
    async def get_category(self, category_id: int) -> ForumCategory:
        return await self.categories.get_category(category_id)

    @translate_store_errors
    async def create_category(self, name: str, **fields: Any) -> ForumCategory:
        return await self.categories.create_category(name, **fields)

    @translate_store_errors
    async def update_category(
        self, category_id: int, changes: dict[str, Any]
    ) -> ForumCategory:
        return await self.categories.update_category(category_id, changes)

    # ==================== Topics ====================

    @translate_store_errors
    async def get_topic(self, topic_id: int) -> ForumTopic:
        return await self.topics.get_topic(topic_id)

    @translate_store_errors
    async def list_topics(
        self,
        filters: TopicFilters | None = None,
        sort_by: TopicSort = TopicSort.LATEST,
        page_size: int | None = None,
        cursor: str | None = None,
    ) -> Page[ForumTopic]:
        return await self.queries.list_topics(filters, sort_by, page_size, cursor)

    @translate_store_errors
    async def create_topic(
        self,
        draft: TopicDraft,
        author: AuthorSnapshot,
        author_roles: list[str] | None = None,
    ) -> ForumTopic:
        return await self.topics.create_topic(draft, author, author_roles)

    @translate_store_errors
    async def update_topic(
        self,
        topic_id: int,
        changes: dict[str, Any],
        actor: AuthorSnapshot | None = None,
    ) -> ForumTopic:
        return await self.topics.update_topic(topic_id, changes, actor)

    @translate_store_errors
    async def moderate_topic(
        self, topic_id: int, status: TopicStatus, moderator_id: str
    ) -> ForumTopic:
        return await self.topics.moderate_topic(topic_id, status, moderator_id)

    @translate_store_errors
    async def delete_topic(self, topic_id: int) -> None:
        await self.topics.delete_topic(topic_id)

    @translate_store_errors
    async def view_topic(self, topic_id: int) -> ForumTopic:
        """Count a view and return the fresh topic."""
        await self.engagement.increment_view_count(topic_id)
        return await self.topics.get_topic(topic_id)

    @translate_store_errors
    async def increment_view_count(self, topic_id: int) -> None:
        await self.engagement.increment_view_count(topic_id)

    @translate_store_errors
    async def toggle_topic_like(self, topic_id: int, user_id: str) -> ToggleResult:
        return await self.engagement.toggle_topic_like(topic_id, user_id)

    # ==================== Replies ====================

    @translate_store_errors
    async def get_reply(self, reply_id: int) -> ForumReply:
        return await self.replies.get_reply(reply_id)

    @translate_store_errors
    async def list_replies(
        self,
        topic_id: int,
        page_size: int | None = None,
        cursor: str | None = None,
    ) -> Page[ForumReply]:
        return await self.queries.list_replies(topic_id, page_size, cursor)

    @translate_store_errors
    async def create_reply(self, draft: ReplyDraft, author: AuthorSnapshot) -> ForumReply:
        return await self.replies.create_reply(draft, author)

    @translate_store_errors
    async def update_reply(
        self,
        reply_id: int,
        content: str,
        attachments: list[dict] | None = None,
    ) -> ForumReply:
        return await self.replies.update_reply(reply_id, content, attachments)

    @translate_store_errors
    async def moderate_reply(
        self, reply_id: int, status: ReplyStatus, moderator_id: str
    ) -> ForumReply:
        return await self.replies.moderate_reply(reply_id, status, moderator_id)

    @translate_store_errors
    async def set_accepted_answer(self, reply_id: int, accepted: bool = True) -> ForumReply:
        return await self.replies.set_accepted_answer(reply_id, accepted)

    @translate_store_errors
    async def delete_reply(self, reply_id: int) -> None:
        await self.replies.delete_reply(reply_id)

    @translate_store_errors
    async def toggle_reply_like(self, reply_id: int, user_id: str) -> ToggleResult:
        return await self.engagement.toggle_reply_like(reply_id, user_id)

    # ==================== Notifications & activity ====================

    @translate_store_errors
    async def get_user_notifications(
        self, user_id: str, unread_only: bool = False
    ) -> list[ForumNotification]:
        return await self.notifications.list_for_user(user_id, unread_only)

    @translate_store_errors
    async def get_recent_activities(self, limit: int | None = None) -> list[ForumActivity]:
        return await self.activity.recent(limit)

    @translate_store_errors
    async def get_forum_stats(self) -> ForumStats:
        return await self.stats.forum_stats()
