"""
Forum models for community discussions.

Includes:
- Categories (sections)
- Topics (threads)
- Replies (threaded posts)
- Likes (one row per user and target)
- Notifications
- Activities (append-only audit trail)

Users are external to the forum: authors are stored as denormalized
snapshots (id, name, email, avatar) and user ids are opaque strings.
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


class TopicStatus(str, PyEnum):
    """
    Topic moderation state.

    Draft -> PendingApproval -> Approved -> Published -> Archived;
    any non-terminal state -> Rejected | Spam by a moderator.
    Transitions are not enforced.
    """

    DRAFT = "draft"
    PUBLISHED = "published"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"
    SPAM = "spam"


class TopicPriority(str, PyEnum):
    """Informational priority, no workflow effect."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class ReplyStatus(str, PyEnum):
    """Reply moderation state."""

    PUBLISHED = "published"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    EDITED = "edited"
    SPAM = "spam"


class NotificationType(str, PyEnum):
    """Kinds of per-user forum notifications."""

    NEW_REPLY = "new_reply"
    NEW_TOPIC = "new_topic"
    TOPIC_LIKED = "topic_liked"
    REPLY_LIKED = "reply_liked"
    MENTION = "mention"
    TOPIC_APPROVED = "topic_approved"
    TOPIC_REJECTED = "topic_rejected"
    REPLY_APPROVED = "reply_approved"
    REPLY_REJECTED = "reply_rejected"
    MODERATOR_ACTION = "moderator_action"


class ActivityType(str, PyEnum):
    """Kinds of activity log entries."""

    TOPIC_CREATED = "topic_created"
    REPLY_CREATED = "reply_created"
    TOPIC_LIKED = "topic_liked"
    REPLY_LIKED = "reply_liked"
    TOPIC_PINNED = "topic_pinned"
    TOPIC_LOCKED = "topic_locked"
    USER_JOINED = "user_joined"
    BADGE_EARNED = "badge_earned"


class ForumCategory(Base):
    """Forum category/section."""

    __tablename__ = "forum_categories"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(50))  # Icon class name
    color: Mapped[str | None] = mapped_column(String(20))  # Hex color
    # Weak reference, no FK: subcategories never own their parent
    parent_id: Mapped[int | None] = mapped_column(Integer)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Moderation
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False)
    allowed_roles: Mapped[list[str]] = mapped_column(JSON, default=list)
    moderators: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Stats (denormalized, never negative)
    topic_count: Mapped[int] = mapped_column(Integer, default=0)
    reply_count: Mapped[int] = mapped_column(Integer, default=0)

    # Last activity
    last_topic_at: Mapped[datetime | None] = mapped_column(DateTime)
    last_topic_by: Mapped[str | None] = mapped_column(String(100))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def snapshot(self) -> dict[str, Any]:
        """Display copy embedded into topics at creation time."""
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "icon": self.icon,
            "color": self.color,
            "requires_approval": self.requires_approval,
        }

    def __repr__(self) -> str:
        return f"<ForumCategory {self.name}>"


class ForumTopic(Base):
    """Forum topic/thread."""

    __tablename__ = "forum_topics"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("forum_categories.id"), index=True
    )
    category_snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    # Author snapshot
    author_id: Mapped[str] = mapped_column(String(128), index=True)
    author_name: Mapped[str] = mapped_column(String(100))
    author_email: Mapped[str | None] = mapped_column(String(255))
    author_avatar: Mapped[str | None] = mapped_column(String(500))

    title: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    content: Mapped[str] = mapped_column(Text)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    attachments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    # Status
    status: Mapped[TopicStatus] = mapped_column(
        Enum(TopicStatus, native_enum=False, values_callable=_values),
        default=TopicStatus.PUBLISHED,
        index=True,
    )
    priority: Mapped[TopicPriority] = mapped_column(
        Enum(TopicPriority, native_enum=False, values_callable=_values),
        default=TopicPriority.NORMAL,
    )
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)

    # Stats
    view_count: Mapped[int] = mapped_column(Integer, default=0)
    reply_count: Mapped[int] = mapped_column(Integer, default=0)
    like_count: Mapped[int] = mapped_column(Integer, default=0)

    # Last activity
    last_reply_id: Mapped[int | None] = mapped_column(Integer)
    last_reply_at: Mapped[datetime | None] = mapped_column(DateTime)
    last_reply_by: Mapped[str | None] = mapped_column(String(100))

    # Moderation audit
    moderated_at: Mapped[datetime | None] = mapped_column(DateTime)
    moderated_by: Mapped[str | None] = mapped_column(String(128))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    like_entries: Mapped[list["ForumLike"]] = relationship(
        lazy="selectin", viewonly=True
    )

    @property
    def likes(self) -> set[str]:
        """User ids that currently like this topic."""
        return {entry.user_id for entry in self.like_entries}

    def __repr__(self) -> str:
        return f"<ForumTopic {self.title[:30]}>"


class ForumReply(Base):
    """Forum reply, optionally nested under another reply of the same topic."""

    __tablename__ = "forum_replies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("forum_topics.id"), index=True)
    # Weak reference, validated on write
    parent_reply_id: Mapped[int | None] = mapped_column(Integer)

    # Author snapshot
    author_id: Mapped[str] = mapped_column(String(128), index=True)
    author_name: Mapped[str] = mapped_column(String(100))
    author_email: Mapped[str | None] = mapped_column(String(255))
    author_avatar: Mapped[str | None] = mapped_column(String(500))

    content: Mapped[str] = mapped_column(Text)
    attachments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    # Status
    status: Mapped[ReplyStatus] = mapped_column(
        Enum(ReplyStatus, native_enum=False, values_callable=_values),
        default=ReplyStatus.PUBLISHED,
    )
    is_accepted_answer: Mapped[bool] = mapped_column(Boolean, default=False)

    # Stats
    like_count: Mapped[int] = mapped_column(Integer, default=0)

    # Moderation audit
    moderated_at: Mapped[datetime | None] = mapped_column(DateTime)
    moderated_by: Mapped[str | None] = mapped_column(String(128))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    edited_at: Mapped[datetime | None] = mapped_column(DateTime)

    like_entries: Mapped[list["ForumLike"]] = relationship(
        lazy="selectin", viewonly=True
    )

    @property
    def likes(self) -> set[str]:
        """User ids that currently like this reply."""
        return {entry.user_id for entry in self.like_entries}

    def __repr__(self) -> str:
        return f"<ForumReply {self.id} in topic {self.topic_id}>"


class ForumLike(Base):
    """Like on a topic or a reply (exactly one of them is set)."""

    __tablename__ = "forum_likes"
    __table_args__ = (
        UniqueConstraint("user_id", "topic_id", name="uq_forum_likes_user_topic"),
        UniqueConstraint("user_id", "reply_id", name="uq_forum_likes_user_reply"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)

    topic_id: Mapped[int | None] = mapped_column(
        ForeignKey("forum_topics.id"), index=True
    )
    reply_id: Mapped[int | None] = mapped_column(
        ForeignKey("forum_replies.id"), index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class ForumNotification(Base):
    """Per-user notification awaiting external delivery."""

    __tablename__ = "forum_notifications"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, native_enum=False, values_callable=_values)
    )
    # Weak references: notifications outlive deleted topics/replies
    topic_id: Mapped[int | None] = mapped_column(Integer)
    reply_id: Mapped[int | None] = mapped_column(Integer)

    triggered_by: Mapped[str] = mapped_column(String(128))
    triggered_by_name: Mapped[str | None] = mapped_column(String(100))
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class ForumActivity(Base):
    """Immutable audit-log entry."""

    __tablename__ = "forum_activities"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    type: Mapped[ActivityType] = mapped_column(
        Enum(ActivityType, native_enum=False, values_callable=_values)
    )
    user_id: Mapped[str] = mapped_column(String(128))
    user_name: Mapped[str | None] = mapped_column(String(100))

    topic_id: Mapped[int | None] = mapped_column(Integer)
    topic_title: Mapped[str | None] = mapped_column(String(255))
    reply_id: Mapped[int | None] = mapped_column(Integer)
    category_id: Mapped[int | None] = mapped_column(Integer)
    category_name: Mapped[str | None] = mapped_column(String(100))

    description: Mapped[str] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
