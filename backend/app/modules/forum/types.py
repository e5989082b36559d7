"""
Plain data passed across the forum service boundary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from app.models.forum import ForumActivity, ForumTopic, TopicPriority, TopicStatus

T = TypeVar("T")


@dataclass
class AuthorSnapshot:
    """Denormalized author identity supplied by the caller."""

    id: str
    name: str
    email: str | None = None
    avatar: str | None = None


@dataclass
class TopicDraft:
    """Fields a caller provides to open a topic."""

    category_id: int | None
    title: str
    content: str
    tags: list[str] = field(default_factory=list)
    priority: TopicPriority = TopicPriority.NORMAL
    attachments: list[dict[str, Any]] = field(default_factory=list)
    save_as_draft: bool = False


@dataclass
class ReplyDraft:
    """Fields a caller provides to post a reply."""

    topic_id: int
    content: str
    parent_reply_id: int | None = None
    attachments: list[dict[str, Any]] = field(default_factory=list)


class TopicSort(str, Enum):
    """Topic listing order."""

    LATEST = "latest"
    POPULAR = "popular"
    MOST_REPLIES = "most_replies"
    OLDEST = "oldest"


@dataclass
class TopicFilters:
    """Exact-match filters, AND-combined. None means "any"."""

    category_id: int | None = None
    author_id: str | None = None
    status: TopicStatus | None = None
    is_pinned: bool | None = None


@dataclass
class Page(Generic[T]):
    """One page of a cursor-paginated listing."""

    items: list[T]
    has_more: bool
    next_cursor: str | None = None


@dataclass
class ToggleResult:
    """Outcome of a like toggle."""

    liked: bool
    like_count: int


@dataclass
class ForumStats:
    """Forum-wide totals and derived views."""

    total_topics: int
    total_replies: int
    total_users: int
    total_views: int
    active_users: int = 0
    top_contributors: list[dict[str, Any]] = field(default_factory=list)
    popular_topics: list[ForumTopic] = field(default_factory=list)
    recent_activity: list[ForumActivity] = field(default_factory=list)
