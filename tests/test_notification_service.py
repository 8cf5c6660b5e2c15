import pytest

from sanchari_chat.exceptions import InvalidArgument


async def _like(service, actor, target="post1"):
    return await service.record_notification("me", "LIKE", actor, target_id=target, actor_name=actor.title())


async def test_record_and_aggregate(notification_service):
    for actor in ("ravi", "meera", "tom"):
        await _like(notification_service, actor)
    await notification_service.record_notification("me", "follow", "ravi", actor_name="Ravi")

    notifications = await notification_service.get_notifications("me")

    likes = [n for n in notifications if n.type == "like"]
    assert len(likes) == 1
    assert likes[0].count == 3
    assert likes[0].read is False
    assert set(likes[0].actors) == {"ravi", "meera", "tom"}
    follows = [n for n in notifications if n.type == "follow"]
    assert follows[0].target_id == "ravi"
    assert follows[0].message == "Ravi started following you"


async def test_targetless_likes_from_one_actor_stay_separate(notification_service):
    await notification_service.record_notification("me", "like", "ravi", actor_name="Ravi")
    await notification_service.record_notification("me", "like", "ravi", actor_name="Ravi")

    notifications = await notification_service.get_notifications("me")

    assert [n.count for n in notifications] == [1, 1]
    assert all(n.target_id is None for n in notifications)


async def test_record_requires_recipient(notification_service):
    with pytest.raises(InvalidArgument):
        await notification_service.record_notification("", "like", "ravi")


async def test_mark_read_is_idempotent(notification_service):
    await _like(notification_service, "ravi")
    await _like(notification_service, "meera", target="post2")
    assert await notification_service.get_unread_count("me") == 2

    assert await notification_service.mark_read("me") == 2
    assert await notification_service.mark_read("me") == 0
    assert await notification_service.get_unread_count("me") == 0
    assert all(n.read for n in await notification_service.get_notifications("me"))


async def test_mark_one_group_read(notification_service):
    await _like(notification_service, "ravi")
    await _like(notification_service, "meera")
    await _like(notification_service, "tom", target="post2")

    [post2, post1] = await notification_service.get_notifications("me")
    assert post1.target_id == "post1"

    assert await notification_service.mark_notifications_read("me", post1.doc_ids) == 2
    assert await notification_service.get_unread_count("me") == 1
    assert await notification_service.mark_notifications_read("me", ["bogus"]) == 0


async def test_unread_count_ignores_message_notifications(notification_service):
    await notification_service.record_notification("me", "message", "ravi")
    await _like(notification_service, "ravi")
    assert await notification_service.get_unread_count("me") == 1


async def test_notifications_are_per_recipient(notification_service):
    await _like(notification_service, "ravi")
    assert await notification_service.get_notifications("someone-else") == []


async def test_listen_to_notifications(notification_service, next_snapshot):
    subscription = await notification_service.listen_to_notifications("me")
    try:
        assert await next_snapshot(subscription) == []
        await _like(notification_service, "ravi")
        snapshot = await next_snapshot(subscription, lambda s: len(s) == 1)
        assert snapshot[0].message == "Ravi liked your post"
        await notification_service.mark_read("me")
        snapshot = await next_snapshot(subscription, lambda s: s and s[0].read)
        assert snapshot[0].count == 1
    finally:
        await subscription.close()
