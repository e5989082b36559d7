"""Tests for reply threads: counters, threading, edits, moderation."""

import pytest

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models.forum import ActivityType, NotificationType, ReplyStatus
from app.modules.forum.types import ReplyDraft, TopicDraft
from conftest import ALICE, BOB, CAROL, add_reply


async def test_replies_update_topic_and_category_counters(forum, category, topic):
    await add_reply(forum, topic.id, author=BOB)
    await add_reply(forum, topic.id, author=CAROL)
    last = await add_reply(forum, topic.id, author=BOB)

    fresh_topic = await forum.get_topic(topic.id)
    assert fresh_topic.reply_count == 3
    assert fresh_topic.last_reply_by == "Bob"
    assert fresh_topic.last_reply_id == last.id
    assert fresh_topic.last_reply_at == last.created_at

    fresh_category = await forum.get_category(category.id)
    assert fresh_category.reply_count == 3


async def test_reply_notifies_topic_author(forum, topic):
    reply = await add_reply(forum, topic.id, author=BOB)

    notifications = await forum.get_user_notifications("alice")
    assert len(notifications) == 1
    assert notifications[0].type == NotificationType.NEW_REPLY
    assert notifications[0].reply_id == reply.id
    assert notifications[0].triggered_by_name == "Bob"


async def test_author_replying_to_own_topic_gets_no_notification(forum, topic):
    await add_reply(forum, topic.id, author=ALICE)

    assert await forum.get_user_notifications("alice") == []
    activities = await forum.get_recent_activities()
    assert activities[0].type == ActivityType.REPLY_CREATED


async def test_reply_requires_content(forum, topic):
    with pytest.raises(ValidationError):
        await add_reply(forum, topic.id, content="   ")

    assert (await forum.get_topic(topic.id)).reply_count == 0


async def test_reply_to_missing_topic(forum):
    with pytest.raises(NotFoundError):
        await add_reply(forum, 777)


async def test_reply_to_locked_topic_is_denied(forum, topic):
    await forum.update_topic(topic.id, {"is_locked": True})

    with pytest.raises(PermissionDeniedError):
        await add_reply(forum, topic.id)


async def test_nested_reply_must_share_topic(forum, category, topic):
    parent = await add_reply(forum, topic.id)
    child = await add_reply(forum, topic.id, author=CAROL, parent=parent.id)
    assert child.parent_reply_id == parent.id

    other = await forum.create_topic(
        TopicDraft(category_id=category.id, title="Other", content="Body"), BOB
    )
    with pytest.raises(ValidationError):
        await add_reply(forum, other.id, parent=parent.id)
    with pytest.raises(ValidationError):
        await add_reply(forum, topic.id, parent=9999)


async def test_reply_in_approval_category_is_pending(forum, moderated_category):
    topic = await forum.create_topic(
        TopicDraft(category_id=moderated_category.id, title="News", content="Body"),
        ALICE,
    )
    reply = await forum.create_reply(
        ReplyDraft(topic_id=topic.id, content="Thanks"), BOB
    )

    assert reply.status == ReplyStatus.PENDING_APPROVAL


async def test_edit_marks_published_reply_as_edited(forum, topic):
    reply = await add_reply(forum, topic.id)
    assert reply.edited_at is None

    edited = await forum.update_reply(reply.id, "Updated text")

    assert edited.content == "Updated text"
    assert edited.status == ReplyStatus.EDITED
    assert edited.edited_at is not None


async def test_edit_keeps_pending_status(forum, topic):
    reply = await add_reply(forum, topic.id)
    await forum.moderate_reply(reply.id, ReplyStatus.PENDING_APPROVAL, "mod1")

    edited = await forum.update_reply(reply.id, "Updated text")

    assert edited.status == ReplyStatus.PENDING_APPROVAL


async def test_moderate_reply_notifies_author(forum, topic):
    reply = await add_reply(forum, topic.id, author=BOB)

    moderated = await forum.moderate_reply(reply.id, ReplyStatus.APPROVED, "mod1")

    assert moderated.moderated_by == "mod1"
    notifications = await forum.get_user_notifications("bob")
    assert [n.type for n in notifications] == [NotificationType.REPLY_APPROVED]


async def test_set_accepted_answer(forum, topic):
    reply = await add_reply(forum, topic.id)

    accepted = await forum.set_accepted_answer(reply.id)
    assert accepted.is_accepted_answer is True

    cleared = await forum.set_accepted_answer(reply.id, accepted=False)
    assert cleared.is_accepted_answer is False


async def test_delete_reply_decrements_and_detaches_children(forum, category, topic):
    parent = await add_reply(forum, topic.id)
    child = await add_reply(forum, topic.id, author=CAROL, parent=parent.id)

    await forum.delete_reply(parent.id)

    with pytest.raises(NotFoundError):
        await forum.get_reply(parent.id)
    assert (await forum.get_reply(child.id)).parent_reply_id is None
    assert (await forum.get_topic(topic.id)).reply_count == 1
    assert (await forum.get_category(category.id)).reply_count == 1
