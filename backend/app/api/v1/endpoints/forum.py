"""
Forum API Endpoints.

Categories, topics, replies, likes, moderation and statistics.
Identity is resolved by the caller: authors arrive in request bodies and
acting users as ``user_id``/``moderator_id`` query parameters.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.forum import (
    ForumActivity,
    ForumCategory,
    ForumNotification,
    ForumReply,
    ForumTopic,
    ReplyStatus,
    TopicPriority,
    TopicStatus,
)
from app.modules.forum.events import get_event_publisher
from app.modules.forum.service import ForumService
from app.modules.forum.types import (
    AuthorSnapshot,
    ReplyDraft,
    TopicDraft,
    TopicFilters,
    TopicSort,
)

router = APIRouter()


async def get_forum(db: AsyncSession = Depends(get_db)) -> ForumService:
    """Forum service bound to the request session."""
    return ForumService(db, publisher=await get_event_publisher())


# ==================== Schemas ====================


class AuthorIn(BaseModel):
    """Author snapshot supplied by the caller."""

    id: str
    name: str
    email: str | None = None
    avatar: str | None = None

    def snapshot(self) -> AuthorSnapshot:
        return AuthorSnapshot(
            id=self.id, name=self.name, email=self.email, avatar=self.avatar
        )


class CreateCategoryRequest(BaseModel):
    """Create new category."""

    name: str
    slug: str | None = None
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    parent_id: int | None = None
    requires_approval: bool = False
    allowed_roles: list[str] = Field(default_factory=list)
    moderators: list[str] = Field(default_factory=list)
    display_order: int = 0


class UpdateCategoryRequest(BaseModel):
    """Partial category update."""

    name: str | None = None
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    parent_id: int | None = None
    is_active: bool | None = None
    requires_approval: bool | None = None
    allowed_roles: list[str] | None = None
    moderators: list[str] | None = None
    display_order: int | None = None


class CreateTopicRequest(BaseModel):
    """Create new topic."""

    category_id: int
    title: str
    content: str
    author: AuthorIn
    author_roles: list[str] | None = None
    tags: list[str] = Field(default_factory=list)
    priority: TopicPriority = TopicPriority.NORMAL
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    save_as_draft: bool = False


class UpdateTopicRequest(BaseModel):
    """Partial topic update."""

    title: str | None = None
    content: str | None = None
    tags: list[str] | None = None
    priority: TopicPriority | None = None
    attachments: list[dict[str, Any]] | None = None
    status: TopicStatus | None = None
    is_pinned: bool | None = None
    is_locked: bool | None = None
    actor: AuthorIn | None = None


class ModerateTopicRequest(BaseModel):
    """Moderator status change for a topic."""

    status: TopicStatus
    moderator_id: str


class CreateReplyRequest(BaseModel):
    """Create new reply in topic."""

    content: str
    author: AuthorIn
    parent_reply_id: int | None = None
    attachments: list[dict[str, Any]] = Field(default_factory=list)


class UpdateReplyRequest(BaseModel):
    """Edit reply content."""

    content: str
    attachments: list[dict[str, Any]] | None = None


class ModerateReplyRequest(BaseModel):
    """Moderator status change for a reply."""

    status: ReplyStatus
    moderator_id: str


class AcceptAnswerRequest(BaseModel):
    """Mark or unmark accepted answer."""

    accepted: bool = True


# ==================== Serializers ====================


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _category(cat: ForumCategory) -> dict[str, Any]:
    return {
        "id": cat.id,
        "name": cat.name,
        "slug": cat.slug,
        "description": cat.description,
        "icon": cat.icon,
        "color": cat.color,
        "parent_id": cat.parent_id,
        "is_active": cat.is_active,
        "requires_approval": cat.requires_approval,
        "allowed_roles": cat.allowed_roles,
        "moderators": cat.moderators,
        "display_order": cat.display_order,
        "topic_count": cat.topic_count,
        "reply_count": cat.reply_count,
        "last_topic_at": _iso(cat.last_topic_at),
        "last_topic_by": cat.last_topic_by,
    }


def _topic(t: ForumTopic, with_content: bool = False) -> dict[str, Any]:
    data = {
        "id": t.id,
        "title": t.title,
        "slug": t.slug,
        "category_id": t.category_id,
        "category": t.category_snapshot,
        "author": {
            "id": t.author_id,
            "name": t.author_name,
            "avatar": t.author_avatar,
        },
        "tags": t.tags,
        "status": t.status.value,
        "priority": t.priority.value,
        "view_count": t.view_count,
        "reply_count": t.reply_count,
        "like_count": t.like_count,
        "likes": sorted(t.likes),
        "is_pinned": t.is_pinned,
        "is_locked": t.is_locked,
        "last_reply_at": _iso(t.last_reply_at),
        "last_reply_by": t.last_reply_by,
        "created_at": _iso(t.created_at),
        "updated_at": _iso(t.updated_at),
    }
    if with_content:
        data["content"] = t.content
        data["attachments"] = t.attachments
        data["moderated_at"] = _iso(t.moderated_at)
        data["moderated_by"] = t.moderated_by
    return data


def _reply(r: ForumReply) -> dict[str, Any]:
    return {
        "id": r.id,
        "topic_id": r.topic_id,
        "parent_reply_id": r.parent_reply_id,
        "content": r.content,
        "author": {
            "id": r.author_id,
            "name": r.author_name,
            "avatar": r.author_avatar,
        },
        "status": r.status.value,
        "like_count": r.like_count,
        "likes": sorted(r.likes),
        "is_accepted_answer": r.is_accepted_answer,
        "attachments": r.attachments,
        "created_at": _iso(r.created_at),
        "updated_at": _iso(r.updated_at),
        "edited_at": _iso(r.edited_at),
    }


def _notification(n: ForumNotification) -> dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type.value,
        "topic_id": n.topic_id,
        "reply_id": n.reply_id,
        "triggered_by": n.triggered_by,
        "triggered_by_name": n.triggered_by_name,
        "title": n.title,
        "message": n.message,
        "is_read": n.is_read,
        "created_at": _iso(n.created_at),
    }


def _activity(a: ForumActivity) -> dict[str, Any]:
    return {
        "id": a.id,
        "type": a.type.value,
        "user_id": a.user_id,
        "user_name": a.user_name,
        "topic_id": a.topic_id,
        "topic_title": a.topic_title,
        "reply_id": a.reply_id,
        "category_id": a.category_id,
        "category_name": a.category_name,
        "description": a.description,
        "timestamp": _iso(a.timestamp),
    }


# ==================== Categories ====================


@router.get("/categories")
async def get_categories(
    include_inactive: bool = Query(False),
    forum: ForumService = Depends(get_forum),
) -> list[dict[str, Any]]:
    """Get forum categories."""
    categories = await forum.get_categories(active_only=not include_inactive)
    return [_category(cat) for cat in categories]


@router.post("/categories", status_code=201)
async def create_category(
    request: CreateCategoryRequest,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Create new category."""
    category = await forum.create_category(**request.model_dump())
    return _category(category)


@router.get("/categories/{category_id}")
async def get_category(
    category_id: int,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Get category details."""
    return _category(await forum.get_category(category_id))


@router.patch("/categories/{category_id}")
async def update_category(
    category_id: int,
    request: UpdateCategoryRequest,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Update category fields."""
    category = await forum.update_category(
        category_id, request.model_dump(exclude_unset=True)
    )
    return _category(category)


# ==================== Topics ====================


@router.get("/topics")
async def get_topics(
    category_id: int | None = Query(None),
    author_id: str | None = Query(None),
    status: TopicStatus | None = Query(None),
    is_pinned: bool | None = Query(None),
    sort_by: TopicSort = Query(TopicSort.LATEST),
    limit: int = Query(20, ge=1, le=100),
    cursor: str | None = Query(None, description="next_cursor of previous page"),
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Get topics with filters and cursor pagination."""
    page = await forum.list_topics(
        TopicFilters(
            category_id=category_id,
            author_id=author_id,
            status=status,
            is_pinned=is_pinned,
        ),
        sort_by=sort_by,
        page_size=limit,
        cursor=cursor,
    )
    return {
        "items": [_topic(t) for t in page.items],
        "has_more": page.has_more,
        "next_cursor": page.next_cursor,
    }


@router.get("/topics/{topic_id}")
async def get_topic(
    topic_id: int,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Get topic details. Counts as a view."""
    topic = await forum.view_topic(topic_id)
    return _topic(topic, with_content=True)


@router.post("/topics", status_code=201)
async def create_topic(
    request: CreateTopicRequest,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Create new topic."""
    topic = await forum.create_topic(
        TopicDraft(
            category_id=request.category_id,
            title=request.title,
            content=request.content,
            tags=request.tags,
            priority=request.priority,
            attachments=request.attachments,
            save_as_draft=request.save_as_draft,
        ),
        request.author.snapshot(),
        author_roles=request.author_roles,
    )
    return _topic(topic, with_content=True)


@router.patch("/topics/{topic_id}")
async def update_topic(
    topic_id: int,
    request: UpdateTopicRequest,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Update topic fields, flags or status."""
    changes = request.model_dump(exclude_unset=True, exclude={"actor"})
    actor = request.actor.snapshot() if request.actor else None
    topic = await forum.update_topic(topic_id, changes, actor=actor)
    return _topic(topic, with_content=True)


@router.post("/topics/{topic_id}/moderate")
async def moderate_topic(
    topic_id: int,
    request: ModerateTopicRequest,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Set topic status as a moderator."""
    topic = await forum.moderate_topic(topic_id, request.status, request.moderator_id)
    return _topic(topic, with_content=True)


@router.delete("/topics/{topic_id}", status_code=204)
async def delete_topic(
    topic_id: int,
    forum: ForumService = Depends(get_forum),
) -> None:
    """Delete topic and its replies."""
    await forum.delete_topic(topic_id)


@router.post("/topics/{topic_id}/like")
async def toggle_topic_like(
    topic_id: int,
    user_id: str = Query(...),
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Like or unlike a topic."""
    result = await forum.toggle_topic_like(topic_id, user_id)
    return {"liked": result.liked, "like_count": result.like_count}


# ==================== Replies ====================


@router.get("/topics/{topic_id}/replies")
async def get_replies(
    topic_id: int,
    limit: int = Query(20, ge=1, le=100),
    cursor: str | None = Query(None),
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Get replies in topic, oldest first."""
    page = await forum.list_replies(topic_id, page_size=limit, cursor=cursor)
    return {
        "items": [_reply(r) for r in page.items],
        "has_more": page.has_more,
        "next_cursor": page.next_cursor,
    }


@router.post("/topics/{topic_id}/replies", status_code=201)
async def create_reply(
    topic_id: int,
    request: CreateReplyRequest,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Create new reply in topic."""
    reply = await forum.create_reply(
        ReplyDraft(
            topic_id=topic_id,
            content=request.content,
            parent_reply_id=request.parent_reply_id,
            attachments=request.attachments,
        ),
        request.author.snapshot(),
    )
    return _reply(reply)


@router.get("/replies/{reply_id}")
async def get_reply(
    reply_id: int,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Get reply details."""
    return _reply(await forum.get_reply(reply_id))


@router.put("/replies/{reply_id}")
async def update_reply(
    reply_id: int,
    request: UpdateReplyRequest,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Edit reply content."""
    reply = await forum.update_reply(reply_id, request.content, request.attachments)
    return _reply(reply)


@router.post("/replies/{reply_id}/moderate")
async def moderate_reply(
    reply_id: int,
    request: ModerateReplyRequest,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Set reply status as a moderator."""
    reply = await forum.moderate_reply(reply_id, request.status, request.moderator_id)
    return _reply(reply)


@router.post("/replies/{reply_id}/accept")
async def accept_reply(
    reply_id: int,
    request: AcceptAnswerRequest,
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Mark reply as accepted answer."""
    reply = await forum.set_accepted_answer(reply_id, request.accepted)
    return _reply(reply)


@router.delete("/replies/{reply_id}", status_code=204)
async def delete_reply(
    reply_id: int,
    forum: ForumService = Depends(get_forum),
) -> None:
    """Delete a reply."""
    await forum.delete_reply(reply_id)


@router.post("/replies/{reply_id}/like")
async def toggle_reply_like(
    reply_id: int,
    user_id: str = Query(...),
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Like or unlike a reply."""
    result = await forum.toggle_reply_like(reply_id, user_id)
    return {"liked": result.liked, "like_count": result.like_count}


# ==================== Notifications, activity, stats ====================


@router.get("/notifications")
async def get_notifications(
    user_id: str = Query(...),
    unread_only: bool = Query(False),
    forum: ForumService = Depends(get_forum),
) -> list[dict[str, Any]]:
    """Get a user's notifications, newest first."""
    notifications = await forum.get_user_notifications(user_id, unread_only)
    return [_notification(n) for n in notifications]


@router.get("/activity")
async def get_activity(
    limit: int = Query(10, ge=1, le=100),
    forum: ForumService = Depends(get_forum),
) -> list[dict[str, Any]]:
    """Get recent forum activity."""
    return [_activity(a) for a in await forum.get_recent_activities(limit)]


@router.get("/stats")
async def get_stats(
    forum: ForumService = Depends(get_forum),
) -> dict[str, Any]:
    """Get forum-wide statistics."""
    stats = await forum.get_forum_stats()
    return {
        "total_topics": stats.total_topics,
        "total_replies": stats.total_replies,
        "total_users": stats.total_users,
        "total_views": stats.total_views,
        "active_users": stats.active_users,
        "top_contributors": stats.top_contributors,
        "popular_topics": [_topic(t) for t in stats.popular_topics],
        "recent_activity": [_activity(a) for a in stats.recent_activity],
    }
