import asyncio

import pytest
from bson import ObjectId

from sanchari_chat.exceptions import InvalidArgument, LastAdminViolation, NotAMember, NotFound
from sanchari_chat.services.group_service import apply_group_message


def test_apply_group_message_increments_everyone_but_sender():
    counts = apply_group_message({"B": 2, "A": 5}, ["A", "B", "C"], "A")
    assert counts == {"B": 3, "C": 1}


def test_apply_group_message_ignores_negative_counters():
    assert apply_group_message({"B": -4}, ["A", "B"], "A") == {"B": 1}


@pytest.fixture
async def group_id(group_service):
    return await group_service.create_group("A", "Trip to Goa", None, ["B", "C"])


async def test_create_group_dedupes_members(group_service):
    group_id = await group_service.create_group("A", "Hikers", "img.png", ["B", "A", "B", "C"])
    group = await group_service.get_group(group_id)

    assert group.members == ["A", "B", "C"]
    assert group.admins == ["A"]
    assert group.image == "img.png"
    assert group.unread_counts == {}


async def test_create_group_requires_name(group_service):
    with pytest.raises(InvalidArgument):
        await group_service.create_group("A", "  ", None, [])


async def test_send_and_mark_read_scenario(group_service, group_id):
    await group_service.send_group_message(group_id, "A", "Asha", "hello")

    group = await group_service.get_group(group_id)
    assert group.unread_counts == {"B": 1, "C": 1}
    assert group.last_message == "hello"
    assert group.last_sender_id == "A"
    assert group.last_message_at is not None

    await group_service.mark_group_read(group_id, "B")

    group = await group_service.get_group(group_id)
    assert group.unread_counts == {"B": 0, "C": 1}


async def test_reply_clears_sender_counter(group_service, group_id):
    await group_service.send_group_message(group_id, "A", "Asha", "hello")
    await group_service.send_group_message(group_id, "B", "Bala", "hi")

    group = await group_service.get_group(group_id)
    assert group.unread_counts == {"A": 1, "C": 2}


async def test_send_stores_counters_computed_from_current_group(group_service, group_id, db):
    await db["groups"].update_one({"_id": ObjectId(group_id)}, {"$set": {"unread_counts.B": -4, "unread_counts.C": 2}})

    await group_service.send_group_message(group_id, "A", "Asha", "hello")

    stored = await db["groups"].find_one({"_id": ObjectId(group_id)})
    assert stored["unread_counts"] == {"B": 1, "C": 3}


async def test_concurrent_senders_do_not_lose_updates(group_service, group_id):
    await asyncio.gather(
        *[group_service.send_group_message(group_id, sender, sender, f"{sender}{i}") for i in range(3) for sender in ("A", "B")]
    )

    group = await group_service.get_group(group_id)
    assert group.unread_counts["C"] == 6
    assert len(await group_service.get_group_messages(group_id)) == 6


async def test_send_requires_membership(group_service, group_id):
    with pytest.raises(NotAMember):
        await group_service.send_group_message(group_id, "Z", "Zoe", "hi")


async def test_send_to_missing_group(group_service):
    with pytest.raises(NotFound):
        await group_service.send_group_message("65f000000000000000000000", "A", "Asha", "hi")


async def test_add_members_is_set_union(group_service, group_id):
    group = await group_service.add_members(group_id, ["C", "D", "D"])
    assert group.members == ["A", "B", "C", "D"]


async def test_add_members_rejects_dotted_ids(group_service, group_id):
    with pytest.raises(InvalidArgument):
        await group_service.add_members(group_id, ["d.e"])


async def test_remove_last_admin_is_refused(group_service, group_id):
    with pytest.raises(LastAdminViolation):
        await group_service.remove_member(group_id, "A")

    group = await group_service.get_group(group_id)
    assert group.members == ["A", "B", "C"]
    assert group.admins == ["A"]


async def test_remove_member_drops_counter(group_service, group_id):
    await group_service.send_group_message(group_id, "A", "Asha", "hello")
    group = await group_service.remove_member(group_id, "C")

    assert group.members == ["A", "B"]
    assert group.unread_counts == {"B": 1}


async def test_admin_can_leave_once_another_admin_exists(group_service, group_id):
    await group_service.make_admin(group_id, "B")
    group = await group_service.leave_group(group_id, "A")

    assert group.members == ["B", "C"]
    assert group.admins == ["B"]


async def test_remove_non_member_is_noop(group_service, group_id):
    group = await group_service.remove_member(group_id, "Z")
    assert group.members == ["A", "B", "C"]


async def test_make_admin_requires_membership(group_service, group_id):
    with pytest.raises(NotAMember):
        await group_service.make_admin(group_id, "Z")


async def test_update_group(group_service, group_id):
    group = await group_service.update_group(group_id, name="Goa 2025")
    assert group.name == "Goa 2025"


async def test_delete_group_removes_messages(group_service, group_id, db):
    await group_service.send_group_message(group_id, "A", "Asha", "bye")
    await group_service.delete_group(group_id)

    assert await group_service.get_group(group_id) is None
    assert await db["group_messages"].count_documents({"group_id": group_id}) == 0


async def test_mark_group_read_swallows_bad_input(group_service):
    await group_service.mark_group_read("", "B")
    await group_service.mark_group_read("not-an-id", "B")


async def test_user_groups(group_service, group_id):
    other = await group_service.create_group("B", "Cooks", None, [])
    groups = await group_service.get_user_groups("B")
    assert {g.id for g in groups} == {group_id, other}
    assert [g.id for g in await group_service.get_user_groups("C")] == [group_id]


async def test_listen_to_group_messages(group_service, group_id, next_snapshot):
    subscription = await group_service.listen_to_group_messages(group_id)
    try:
        assert await next_snapshot(subscription) == []
        await group_service.send_group_message(group_id, "B", "Bala", "hey")
        snapshot = await next_snapshot(subscription, lambda s: len(s) == 1)
        assert snapshot[0].sender_name == "Bala"
    finally:
        await subscription.close()


async def test_listen_to_user_groups_sees_new_group(group_service, next_snapshot):
    subscription = await group_service.listen_to_user_groups("C")
    try:
        assert await next_snapshot(subscription) == []
        await group_service.create_group("A", "Trip", None, ["C"])
        snapshot = await next_snapshot(subscription, lambda s: len(s) == 1)
        assert snapshot[0].name == "Trip"
    finally:
        await subscription.close()


async def test_listen_without_group_id_is_inert(group_service, caplog):
    received = []
    subscription = await group_service.listen_to_group_messages("", received.append)

    subscription()
    await asyncio.sleep(0)
    assert received == []
    assert "without a group id" in caplog.text
