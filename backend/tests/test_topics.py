"""Tests for topic lifecycle: creation, updates, moderation, deletion."""

import pytest

from app.core.config import settings
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models.forum import (
    ActivityType,
    NotificationType,
    TopicPriority,
    TopicStatus,
)
from app.modules.forum.types import AuthorSnapshot, TopicDraft
from conftest import ALICE, BOB, CAROL, add_reply


def draft(category_id, title="Hello World", **kwargs):
    return TopicDraft(category_id=category_id, title=title, content="Body", **kwargs)


async def test_create_topic_publishes_and_updates_category(forum, category):
    topic = await forum.create_topic(draft(category.id), ALICE)

    assert topic.status == TopicStatus.PUBLISHED
    assert topic.slug == "hello-world"
    assert topic.author_name == "Alice"
    assert topic.view_count == 0
    assert topic.reply_count == 0
    assert topic.likes == set()
    assert topic.category_snapshot["name"] == "General Discussion"

    fresh = await forum.get_category(category.id)
    assert fresh.topic_count == 1
    assert fresh.last_topic_by == "Alice"
    assert fresh.last_topic_at == topic.created_at


async def test_create_topic_records_activity(forum, topic):
    activities = await forum.get_recent_activities()

    assert activities[0].type == ActivityType.TOPIC_CREATED
    assert activities[0].topic_id == topic.id
    assert activities[0].category_name == "General Discussion"


async def test_save_as_draft(forum, category):
    topic = await forum.create_topic(draft(category.id, save_as_draft=True), ALICE)
    assert topic.status == TopicStatus.DRAFT


async def test_approval_category_holds_topic_and_notifies_moderators(
    forum, moderated_category
):
    topic = await forum.create_topic(draft(moderated_category.id), ALICE)

    assert topic.status == TopicStatus.PENDING_APPROVAL
    for moderator in ("mod1", "mod2"):
        notifications = await forum.get_user_notifications(moderator)
        assert [n.type for n in notifications] == [NotificationType.NEW_TOPIC]
        assert notifications[0].topic_id == topic.id


async def test_missing_fields_are_rejected(forum, category):
    with pytest.raises(ValidationError) as exc_info:
        await forum.create_topic(
            TopicDraft(category_id=category.id, title="  ", content=""), ALICE
        )

    assert exc_info.value.details == {"fields": ["title", "content"]}
    assert (await forum.get_category(category.id)).topic_count == 0


async def test_unknown_category_is_not_found(forum):
    with pytest.raises(NotFoundError):
        await forum.create_topic(draft(404), ALICE)


async def test_inactive_category_is_rejected(forum, category):
    await forum.categories.deactivate_category(category.id)

    with pytest.raises(ValidationError):
        await forum.create_topic(draft(category.id), ALICE)


async def test_allowed_roles_are_enforced_when_roles_given(forum):
    members_only = await forum.create_category(
        name="Members", allowed_roles=["member", "admin"]
    )

    with pytest.raises(PermissionDeniedError):
        await forum.create_topic(draft(members_only.id), BOB, author_roles=["guest"])

    topic = await forum.create_topic(
        draft(members_only.id), BOB, author_roles=["member"]
    )
    assert topic.status == TopicStatus.PUBLISHED


async def test_duplicate_titles_get_unique_slugs(forum, category):
    first = await forum.create_topic(draft(category.id), ALICE)
    second = await forum.create_topic(draft(category.id), BOB)
    third = await forum.create_topic(draft(category.id), CAROL)

    assert [first.slug, second.slug, third.slug] == [
        "hello-world",
        "hello-world-1",
        "hello-world-2",
    ]


async def test_update_topic_merges_fields(forum, topic):
    updated = await forum.update_topic(
        topic.id,
        {"title": "Hello again", "tags": ["intro", "meta"], "priority": "high"},
    )

    assert updated.title == "Hello again"
    assert updated.tags == ["intro", "meta"]
    assert updated.priority == TopicPriority.HIGH
    assert updated.updated_at >= topic.created_at


async def test_update_topic_rejects_counters(forum, topic):
    with pytest.raises(ValidationError):
        await forum.update_topic(topic.id, {"view_count": 1000})


async def test_pin_and_lock_are_recorded(forum, topic):
    moderator = AuthorSnapshot(id="mod1", name="Moderator")

    await forum.update_topic(
        topic.id, {"is_pinned": True, "is_locked": True}, actor=moderator
    )

    types = {a.type for a in await forum.get_recent_activities()}
    assert ActivityType.TOPIC_PINNED in types
    assert ActivityType.TOPIC_LOCKED in types


async def test_moderate_topic_sets_audit_fields_and_notifies(forum, topic):
    moderated = await forum.moderate_topic(topic.id, TopicStatus.REJECTED, "mod1")

    assert moderated.status == TopicStatus.REJECTED
    assert moderated.moderated_by == "mod1"
    assert moderated.moderated_at is not None

    notifications = await forum.get_user_notifications("alice")
    assert [n.type for n in notifications] == [NotificationType.TOPIC_REJECTED]


async def test_moderation_transitions_are_not_guarded(forum, topic):
    await forum.moderate_topic(topic.id, TopicStatus.SPAM, "mod1")
    republished = await forum.moderate_topic(topic.id, TopicStatus.PUBLISHED, "mod1")

    assert republished.status == TopicStatus.PUBLISHED
    types = [n.type for n in await forum.get_user_notifications("alice")]
    assert NotificationType.MODERATOR_ACTION in types
    assert NotificationType.TOPIC_APPROVED in types


async def test_delete_topic_cascades_replies(forum, category, topic):
    await add_reply(forum, topic.id)
    await add_reply(forum, topic.id, author=CAROL)

    await forum.delete_topic(topic.id)

    with pytest.raises(NotFoundError):
        await forum.get_topic(topic.id)
    page = await forum.list_replies(topic.id)
    assert page.items == []

    fresh = await forum.get_category(category.id)
    assert fresh.topic_count == 0
    # Cascaded replies stay counted in the category total
    assert fresh.reply_count == 2


async def test_delete_topic_reconciles_reply_total_when_enabled(
    forum, category, topic, monkeypatch
):
    monkeypatch.setattr(settings, "forum_reconcile_cascade_reply_counts", True)
    await add_reply(forum, topic.id)
    await add_reply(forum, topic.id, author=CAROL)

    await forum.delete_topic(topic.id)

    fresh = await forum.get_category(category.id)
    assert fresh.topic_count == 0
    assert fresh.reply_count == 0


async def test_delete_missing_topic_raises_not_found(forum):
    with pytest.raises(NotFoundError):
        await forum.delete_topic(12345)


@pytest.mark.parametrize(
    "field", ["status", "priority", "is_pinned", "is_locked", "tags", "attachments"]
)
async def test_update_topic_rejects_null_values(forum, topic, field):
    with pytest.raises(ValidationError) as exc_info:
        await forum.update_topic(topic.id, {field: None})

    assert exc_info.value.details == {"fields": [field]}
    fresh = await forum.get_topic(topic.id)
    assert fresh.status == TopicStatus.PUBLISHED
    assert fresh.is_pinned is False


async def test_update_topic_rejects_unknown_status(forum, topic):
    with pytest.raises(ValidationError):
        await forum.update_topic(topic.id, {"status": "bogus"})
    with pytest.raises(ValidationError):
        await forum.update_topic(topic.id, {"priority": "critical"})

    assert (await forum.get_topic(topic.id)).status == TopicStatus.PUBLISHED
