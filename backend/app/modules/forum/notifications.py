"""
Notification Dispatcher - best-effort per-user notifications.
"""

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.forum import ForumNotification, NotificationType
from app.modules.forum.events import EventPublisher, ForumEvent


class NotificationDispatcher:
    """
    Persists notifications triggered by forum actions.

    Dispatch never raises: the triggering operation has already been
    applied and must not fail because a notification could not be stored
    or announced. Each notification is written inside a savepoint so a
    failed insert does not poison the caller's transaction.

    Usage:
        notifier = NotificationDispatcher(db_session, publisher)
        await notifier.dispatch(
            user_id="u1",
            type=NotificationType.NEW_REPLY,
            triggered_by="u2",
            title="New reply",
            message="u2 replied to your topic",
            topic_id=42,
        )
    """

    def __init__(
        self,
        db: AsyncSession,
        publisher: EventPublisher | None = None,
    ) -> None:
        """Initialize dispatcher with session and optional event publisher."""
        self.db = db
        self.publisher = publisher

    async def dispatch(
        self,
        user_id: str,
        type: NotificationType,
        triggered_by: str,
        title: str,
        message: str,
        triggered_by_name: str | None = None,
        topic_id: int | None = None,
        reply_id: int | None = None,
    ) -> ForumNotification | None:
        """
        Store a notification for ``user_id``.

        Returns:
            The stored notification, or None if it could not be stored
        """
        if user_id == triggered_by:
            return None

        try:
            notification = await self._persist(
                ForumNotification(
                    user_id=user_id,
                    type=type,
                    topic_id=topic_id,
                    reply_id=reply_id,
                    triggered_by=triggered_by,
                    triggered_by_name=triggered_by_name,
                    title=title,
                    message=message,
                    is_read=False,
                )
            )
        except Exception as e:
            logger.warning(f"Notification {type.value} for {user_id} dropped: {e}")
            return None

        if self.publisher is not None:
            try:
                await self.publisher.publish(
                    ForumEvent(
                        type="notification.created",
                        payload={
                            "id": notification.id,
                            "user_id": user_id,
                            "type": type.value,
                            "topic_id": topic_id,
                            "reply_id": reply_id,
                            "triggered_by": triggered_by,
                            "title": title,
                        },
                    )
                )
            except Exception as e:
                logger.warning(f"Publishing notification {notification.id} failed: {e}")

        return notification

    async def _persist(self, notification: ForumNotification) -> ForumNotification:
        async with self.db.begin_nested():
            self.db.add(notification)
        return notification

    async def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[ForumNotification]:
        """Get a user's notifications, newest first."""
        query = select(ForumNotification).where(ForumNotification.user_id == user_id)
        if unread_only:
            query = query.where(ForumNotification.is_read == False)  # noqa: E712
        query = query.order_by(
            ForumNotification.created_at.desc(),
            ForumNotification.id.desc(),
        ).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())
