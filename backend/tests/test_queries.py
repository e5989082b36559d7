"""Tests for filtered listings and cursor pagination."""

import pytest

from app.core.exceptions import ValidationError
from app.models.forum import TopicStatus
from app.modules.forum.queries import decode_cursor, encode_cursor
from app.modules.forum.types import TopicDraft, TopicFilters, TopicSort
from conftest import ALICE, BOB, add_reply


async def make_topics(forum, category_id, count, author=ALICE):
    topics = []
    for index in range(count):
        topics.append(
            await forum.create_topic(
                TopicDraft(
                    category_id=category_id, title=f"Topic {index}", content="Body"
                ),
                author,
            )
        )
    return topics


async def test_oldest_pages_are_stable(forum, category):
    topics = await make_topics(forum, category.id, 5)

    first = await forum.list_topics(sort_by=TopicSort.OLDEST, page_size=2)
    second = await forum.list_topics(
        sort_by=TopicSort.OLDEST, page_size=2, cursor=first.next_cursor
    )
    third = await forum.list_topics(
        sort_by=TopicSort.OLDEST, page_size=2, cursor=second.next_cursor
    )

    seen = [t.id for page in (first, second, third) for t in page.items]
    assert seen == [t.id for t in topics]
    assert (first.has_more, second.has_more, third.has_more) == (True, True, False)
    assert third.next_cursor is None


async def test_new_topics_do_not_shift_later_pages(forum, category):
    topics = await make_topics(forum, category.id, 4)

    first = await forum.list_topics(sort_by=TopicSort.OLDEST, page_size=2)
    await make_topics(forum, category.id, 1, author=BOB)
    second = await forum.list_topics(
        sort_by=TopicSort.OLDEST, page_size=2, cursor=first.next_cursor
    )

    assert [t.id for t in second.items] == [topics[2].id, topics[3].id]
    assert second.has_more is True


async def test_popular_orders_by_views(forum, category):
    quiet, busy, medium = await make_topics(forum, category.id, 3)
    for _ in range(2):
        await forum.increment_view_count(busy.id)
    await forum.increment_view_count(medium.id)

    page = await forum.list_topics(sort_by=TopicSort.POPULAR)

    assert [t.id for t in page.items] == [busy.id, medium.id, quiet.id]
    assert page.items[0].view_count == 2


async def test_most_replies_order(forum, category):
    first, second = await make_topics(forum, category.id, 2)
    await add_reply(forum, second.id)

    page = await forum.list_topics(sort_by="most_replies")

    assert [t.id for t in page.items] == [second.id, first.id]


async def test_latest_follows_updates(forum, category):
    first, second = await make_topics(forum, category.id, 2)
    await forum.update_topic(first.id, {"content": "Edited"})

    page = await forum.list_topics()

    assert [t.id for t in page.items] == [first.id, second.id]


async def test_filters_are_combined(forum, category):
    other = await forum.create_category(name="Help")
    alice_general = (await make_topics(forum, category.id, 1))[0]
    await make_topics(forum, category.id, 1, author=BOB)
    await make_topics(forum, other.id, 1)
    await forum.update_topic(alice_general.id, {"is_pinned": True})

    by_author = await forum.list_topics(
        TopicFilters(category_id=category.id, author_id="alice")
    )
    pinned = await forum.list_topics(TopicFilters(is_pinned=True))

    assert [t.id for t in by_author.items] == [alice_general.id]
    assert [t.id for t in pinned.items] == [alice_general.id]


async def test_status_filter(forum, category):
    published = (await make_topics(forum, category.id, 1))[0]
    draft = await forum.create_topic(
        TopicDraft(
            category_id=category.id, title="Draft", content="Body", save_as_draft=True
        ),
        ALICE,
    )

    page = await forum.list_topics(TopicFilters(status=TopicStatus.DRAFT))
    assert [t.id for t in page.items] == [draft.id]

    page = await forum.list_topics(TopicFilters(status=TopicStatus.PUBLISHED))
    assert [t.id for t in page.items] == [published.id]


async def test_cursor_from_other_ordering_is_rejected(forum, category):
    await make_topics(forum, category.id, 3)
    page = await forum.list_topics(sort_by=TopicSort.OLDEST, page_size=1)

    with pytest.raises(ValidationError):
        await forum.list_topics(sort_by=TopicSort.POPULAR, cursor=page.next_cursor)


async def test_malformed_cursor_is_rejected(forum):
    with pytest.raises(ValidationError):
        await forum.list_topics(cursor="not-a-cursor")


def test_cursor_round_trip():
    token = encode_cursor("popular", 12, 3)
    assert decode_cursor(token, "popular") == (12, 3)


async def test_page_size_is_clamped(forum, category):
    await make_topics(forum, category.id, 3)

    page = await forum.list_topics(page_size=10_000)

    assert len(page.items) == 3
    assert page.has_more is False


async def test_replies_are_chronological_and_paginated(forum, topic):
    replies = [
        await add_reply(forum, topic.id, content=f"Reply {index}")
        for index in range(3)
    ]

    first = await forum.list_replies(topic.id, page_size=2)
    second = await forum.list_replies(topic.id, page_size=2, cursor=first.next_cursor)

    assert [r.id for r in first.items] == [replies[0].id, replies[1].id]
    assert [r.id for r in second.items] == [replies[2].id]
    assert second.has_more is False


async def test_reply_cursor_cannot_page_topics(forum, topic):
    for index in range(2):
        await add_reply(forum, topic.id, content=f"Reply {index}")
    page = await forum.list_replies(topic.id, page_size=1)

    with pytest.raises(ValidationError):
        await forum.list_topics(cursor=page.next_cursor)
