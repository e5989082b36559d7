"""
Query & Pagination Engine - filtered, cursor-paginated listings.

Cursors are opaque URL-safe tokens holding the sort key and id of the last
item on the previous page. Pages continue strictly after that (key, id)
pair, so rows inserted concurrently never shift or repeat earlier pages
the way offsets do.
"""

import base64
import binascii
import json
from datetime import datetime
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.models.forum import ForumReply, ForumTopic
from app.modules.forum.types import Page, TopicFilters, TopicSort

# sort -> (column attribute name, descending)
TOPIC_ORDERING: dict[TopicSort, tuple[str, bool]] = {
    TopicSort.LATEST: ("updated_at", True),
    TopicSort.POPULAR: ("view_count", True),
    TopicSort.MOST_REPLIES: ("reply_count", True),
    TopicSort.OLDEST: ("created_at", False),
}


def encode_cursor(sort: str, value: Any, item_id: int) -> str:
    """Build an opaque continuation token."""
    if isinstance(value, datetime):
        value = value.isoformat()
    raw = json.dumps({"s": sort, "v": value, "id": item_id})
    return base64.urlsafe_b64encode(raw.encode()).decode()


def decode_cursor(cursor: str, sort: str) -> tuple[Any, int]:
    """Parse a token produced by encode_cursor for the same ordering."""
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode()))
        if data["s"] != sort:
            raise ValidationError("Cursor belongs to a different ordering")
        return data["v"], int(data["id"])
    except ValidationError:
        raise
    except (binascii.Error, ValueError, KeyError, TypeError) as e:
        raise ValidationError("Malformed pagination cursor") from e


def _page_size(page_size: int | None, default: int) -> int:
    size = page_size or default
    return max(1, min(size, settings.forum_max_page_size))


def _after(model: type, field: str, descending: bool, value: Any, last_id: int):
    column = getattr(model, field)
    if isinstance(value, str) and field.endswith("_at"):
        value = datetime.fromisoformat(value)
    if descending:
        return or_(column < value, and_(column == value, model.id < last_id))
    return or_(column > value, and_(column == value, model.id > last_id))


class ForumQueryEngine:
    """
    Read-only listings over topics and replies.

    Usage:
        queries = ForumQueryEngine(db_session)
        page = await queries.list_topics(TopicFilters(category_id=1))
        more = await queries.list_topics(cursor=page.next_cursor)
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize query engine with database session."""
        self.db = db

    async def list_topics(
        self,
        filters: TopicFilters | None = None,
        sort_by: TopicSort = TopicSort.LATEST,
        page_size: int | None = None,
        cursor: str | None = None,
    ) -> Page[ForumTopic]:
        """
        Get topics with filters and cursor pagination.

        Args:
            filters: Exact-match filters (AND-combined)
            sort_by: latest, popular, most_replies or oldest
            page_size: Max results per page
            cursor: Token from the previous page's next_cursor

        Returns:
            Page of topics with has_more/next_cursor
        """
        filters = filters or TopicFilters()
        sort_by = TopicSort(sort_by)
        size = _page_size(page_size, settings.forum_topics_per_page)
        field, descending = TOPIC_ORDERING[sort_by]
        column = getattr(ForumTopic, field)

        query = select(ForumTopic)

        if filters.category_id is not None:
            query = query.where(ForumTopic.category_id == filters.category_id)
        if filters.author_id is not None:
            query = query.where(ForumTopic.author_id == filters.author_id)
        if filters.status is not None:
            query = query.where(ForumTopic.status == filters.status)
        if filters.is_pinned is not None:
            query = query.where(ForumTopic.is_pinned == filters.is_pinned)

        if cursor:
            value, last_id = decode_cursor(cursor, sort_by.value)
            query = query.where(_after(ForumTopic, field, descending, value, last_id))

        if descending:
            query = query.order_by(column.desc(), ForumTopic.id.desc())
        else:
            query = query.order_by(column.asc(), ForumTopic.id.asc())

        # Fetch one extra row to know whether another page exists
        query = query.limit(size + 1).execution_options(populate_existing=True)
        result = await self.db.execute(query)
        rows = list(result.scalars().all())

        return self._page(rows, size, sort_by.value, field)

    async def list_replies(
        self,
        topic_id: int,
        page_size: int | None = None,
        cursor: str | None = None,
    ) -> Page[ForumReply]:
        """Get a topic's replies in chronological order."""
        size = _page_size(page_size, settings.forum_posts_per_page)

        query = select(ForumReply).where(ForumReply.topic_id == topic_id)
        if cursor:
            value, last_id = decode_cursor(cursor, "thread")
            query = query.where(_after(ForumReply, "created_at", False, value, last_id))

        query = (
            query.order_by(ForumReply.created_at.asc(), ForumReply.id.asc())
            .limit(size + 1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        rows = list(result.scalars().all())

        return self._page(rows, size, "thread", "created_at")

    @staticmethod
    def _page(rows: list, size: int, sort: str, field: str) -> Page:
        has_more = len(rows) > size
        items = rows[:size]
        next_cursor = None
        if has_more and items:
            last = items[-1]
            next_cursor = encode_cursor(sort, getattr(last, field), last.id)
        return Page(items=items, has_more=has_more, next_cursor=next_cursor)
