import json

import pytest

from coord.messages import get_message
from coord.notifications import list_pending
from coord.tasks import get_task, list_tasks
from ingest.lifecycle import resolve_targets, route_message


def test_auth_bug_scenario(conn):
    result = route_message(
        conn, "Hey @forge can you fix the auth bug? It's urgent!", create_task=True,
    )

    assert result.targets == ["forge"]
    assert result.priority == "urgent"

    pending = list_pending(conn)
    assert len(pending) == 1
    assert (pending[0].agent_id, pending[0].priority, pending[0].kind) == ("forge", "urgent", "mention")

    task = get_task(conn, result.task_id)
    assert task.assigned_to == "forge"
    assert task.priority == 1
    assert "auth bug" in task.title
    assert task.source == f"message:{result.message_id}"


def test_all_scenario(conn):
    result = route_message(conn, "@all sync please")
    assert sorted(result.targets) == ["forge", "milo", "pulse", "scout"]

    pending = list_pending(conn)
    assert len(pending) == 4
    assert {n.priority for n in pending} == {"normal"}
    assert len({n.agent_id for n in pending}) == 4


def test_no_task_unless_asked(conn):
    result = route_message(conn, "@forge please fix the login bug")
    assert result.task_id is None
    assert list_tasks(conn) == []


def test_message_stored_with_resolved_mentions(conn):
    result = route_message(conn, "@Scout @bob look at this", sender="milo", channel="launch")
    message = get_message(conn, result.message_id)
    assert message.sender == "milo"
    assert message.channel == "launch"
    assert message.mentions == ["scout"]
    assert result.unknown == ["bob"]


def test_unaddressed_task_goes_to_coordinator(conn):
    result = route_message(conn, "someone should plan the offsite", create_task=True)
    assert result.targets == []
    assert result.task_assignee == "milo"

    [n] = list_pending(conn)
    assert (n.agent_id, n.kind, n.source_type) == ("milo", "task_assigned", "task")


def test_explicit_category_wins(conn):
    result = route_message(conn, "@forge fix the bug in the audit script",
                           create_task=True, category="security")
    assert result.task_assignee == "pulse"
    # forge was mentioned, pulse gets the task
    assert {n.agent_id for n in list_pending(conn)} == {"forge", "pulse"}


def test_empty_message_rejected(conn):
    with pytest.raises(ValueError):
        route_message(conn, "   ")


def test_thread_reply(conn):
    parent = route_message(conn, "@scout ideas for the launch?")
    reply = route_message(conn, "@milo here are three", sender="scout", thread_id=parent.message_id)
    assert get_message(conn, reply.message_id).thread_id == parent.message_id


def test_reply_to_missing_message(conn):
    with pytest.raises(ValueError, match="Message 999 not found"):
        route_message(conn, "@forge hi", thread_id=999)
    assert list_pending(conn) == []
    assert conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0] == 0


def test_resolve_targets_all_keeps_unknown(conn):
    targets, unknown = resolve_targets(conn, ["all", "bob"])
    assert len(targets) == 4
    assert unknown == ["bob"]


def test_mentions_stored_as_json(conn):
    result = route_message(conn, "@pulse @forge deploy")
    raw = conn.execute("SELECT mentions FROM messages WHERE id = ?", (result.message_id,)).fetchone()[0]
    assert json.loads(raw) == ["pulse", "forge"]
