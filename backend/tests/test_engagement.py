"""Tests for likes and view counting."""

import pytest

from app.core.exceptions import NotFoundError
from app.models.forum import ActivityType, NotificationType
from conftest import BOB, add_reply


async def test_like_toggle_round_trip(forum, topic):
    liked = await forum.toggle_topic_like(topic.id, "bob")
    assert (liked.liked, liked.like_count) == (True, 1)
    assert (await forum.get_topic(topic.id)).likes == {"bob"}

    unliked = await forum.toggle_topic_like(topic.id, "bob")
    assert (unliked.liked, unliked.like_count) == (False, 0)
    assert (await forum.get_topic(topic.id)).likes == set()


async def test_like_count_matches_members(forum, topic):
    for user_id in ("bob", "carol", "dave"):
        await forum.toggle_topic_like(topic.id, user_id)
    await forum.toggle_topic_like(topic.id, "carol")

    fresh = await forum.get_topic(topic.id)
    assert fresh.likes == {"bob", "dave"}
    assert fresh.like_count == 2
    assert await forum.engagement.get_topic_likes(topic.id) == {"bob", "dave"}


async def test_like_notifies_author_once(forum, topic):
    await forum.toggle_topic_like(topic.id, "bob")
    await forum.toggle_topic_like(topic.id, "bob")

    notifications = await forum.get_user_notifications("alice")
    assert [n.type for n in notifications] == [NotificationType.TOPIC_LIKED]
    assert notifications[0].triggered_by == "bob"


async def test_self_like_records_activity_without_notification(forum, topic):
    result = await forum.toggle_topic_like(topic.id, "alice")

    assert result.liked is True
    assert await forum.get_user_notifications("alice") == []
    activities = await forum.get_recent_activities()
    assert activities[0].type == ActivityType.TOPIC_LIKED


async def test_reply_like_toggle(forum, topic):
    reply = await add_reply(forum, topic.id, author=BOB)

    result = await forum.toggle_reply_like(reply.id, "alice")
    assert (result.liked, result.like_count) == (True, 1)
    assert (await forum.get_reply(reply.id)).likes == {"alice"}

    bob_notifications = await forum.get_user_notifications("bob")
    assert [n.type for n in bob_notifications] == [NotificationType.REPLY_LIKED]

    result = await forum.toggle_reply_like(reply.id, "alice")
    assert (result.liked, result.like_count) == (False, 0)


async def test_topic_and_reply_likes_are_independent(forum, topic):
    reply = await add_reply(forum, topic.id, author=BOB)

    await forum.toggle_topic_like(topic.id, "carol")
    await forum.toggle_reply_like(reply.id, "carol")

    assert (await forum.get_topic(topic.id)).like_count == 1
    assert (await forum.get_reply(reply.id)).like_count == 1


async def test_like_missing_targets(forum):
    with pytest.raises(NotFoundError):
        await forum.toggle_topic_like(404, "bob")
    with pytest.raises(NotFoundError):
        await forum.toggle_reply_like(404, "bob")


async def test_view_count_increments(forum, topic):
    for _ in range(3):
        await forum.increment_view_count(topic.id)

    viewed = await forum.view_topic(topic.id)
    assert viewed.view_count == 4


async def test_view_missing_topic(forum):
    with pytest.raises(NotFoundError):
        await forum.increment_view_count(404)


async def test_self_like_on_reply_sends_no_notification(forum, topic):
    reply = await add_reply(forum, topic.id, author=BOB)

    result = await forum.toggle_reply_like(reply.id, "bob")

    assert (result.liked, result.like_count) == (True, 1)
    assert await forum.get_user_notifications("bob") == []
    activities = await forum.get_recent_activities()
    assert activities[0].type == ActivityType.REPLY_LIKED
