from datetime import datetime, timedelta, timezone

import pytest

from sanchari_chat.schemas.notification import NotificationRecord
from sanchari_chat.services.notification_aggregator import aggregate_notifications, render_notification_text


BASE = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def record(id, type="like", target_id="post1", actor_id="u1", minutes=0, read=False, **kwargs):
    return NotificationRecord(
        id=id,
        recipient_id="me",
        type=type,
        target_id=target_id,
        actor_id=actor_id,
        read=read,
        timestamp=BASE + timedelta(minutes=minutes),
        **kwargs,
    )


def test_three_likes_collapse_into_one():
    [group] = aggregate_notifications(
        [
            record("n1", actor_id="u1", minutes=1, read=True),
            record("n2", actor_id="u2", minutes=3, read=False, actor_name="Ravi"),
            record("n3", actor_id="u3", minutes=2, read=True),
        ]
    )

    assert group.count == 3
    assert group.read is False
    assert group.actors == ["u2", "u3", "u1"]
    assert group.timestamp == BASE + timedelta(minutes=3)
    assert sorted(group.doc_ids) == ["n1", "n2", "n3"]
    assert group.id == "n2"
    assert group.message == "Ravi and 2 others liked your post"


def test_all_read_group_is_read():
    [group] = aggregate_notifications([record("n1", read=True), record("n2", read=True, actor_id="u2")])
    assert group.read is True


def test_repeat_actor_counted_once_in_actors():
    [group] = aggregate_notifications([record("n1", minutes=1), record("n2", minutes=2)])
    assert group.count == 2
    assert group.actors == ["u1"]


def test_groups_split_by_type_and_target_and_sorted_newest_first():
    result = aggregate_notifications(
        [
            record("n1", type="like", target_id="p1", minutes=1),
            record("n2", type="comment", target_id="p1", minutes=5, text="wow"),
            record("n3", type="like", target_id="p2", minutes=3),
            record("n4", type="follow", target_id="u7", actor_id="u7", minutes=4),
        ]
    )

    assert [(g.type, g.target_id) for g in result] == [
        ("comment", "p1"),
        ("follow", "u7"),
        ("like", "p2"),
        ("like", "p1"),
    ]


def test_records_without_target_stay_separate():
    result = aggregate_notifications(
        [record("n1", type="system", target_id=None), record("n2", type="system", target_id=None, minutes=1)]
    )
    assert [g.count for g in result] == [1, 1]


def test_message_notifications_are_excluded():
    result = aggregate_notifications([record("n1", type="message"), record("n2", type="chat"), record("n3")])
    assert [g.id for g in result] == ["n3"]


def test_empty_input():
    assert aggregate_notifications([]) == []


@pytest.mark.parametrize(
    "args,expected",
    [
        (("like", 1, "Ravi"), "Ravi liked your post"),
        (("like", 4, "Ravi"), "Ravi and 3 others liked your post"),
        (("comment", 1, "Ravi", "Lovely view"), 'Ravi commented: "Lovely view"'),
        (("comment", 1, "Ravi"), 'Ravi commented: "Nice!"'),
        (("comment", 2, "Ravi", "ignored"), "Ravi and 1 others commented on your post"),
        (("follow", 1, "Ravi"), "Ravi started following you"),
        (("follow", 1, None), "Someone started following you"),
        (("reward", 1, "Ravi"), "New notification"),
    ],
)
def test_render_notification_text(args, expected):
    assert render_notification_text(*args) == expected


def test_render_truncates_long_comments():
    text = render_notification_text("comment", 1, "Ravi", "x" * 80)
    assert text == 'Ravi commented: "' + "x" * 50 + '..."'
