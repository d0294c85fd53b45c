import pytest

from servicemarket.accounts import AccountService
from servicemarket.audit import AI_QUERY
from servicemarket.documents import Collections
from servicemarket.errors import NotFound, Unauthorized, ValidationFailed
from servicemarket.messaging import Messenger


@pytest.fixture
def messenger(store, notifier, audit):
    return Messenger(store, notifier=notifier, audit=audit)


@pytest.fixture
def people(store, audit):
    accounts = AccountService(store, audit=audit)
    accounts.register_user("Layla", "layla@example.com", user_id="u1")
    accounts.register_user("Omar", "omar@falcon.ae", role="PROVIDER", user_id="p1")
    accounts.register_user("Sara", "sara@docs.ae", role="PROVIDER", user_id="p2")


def test_send_message_notifies_and_audits(messenger, people, notifier, audit):
    messenger.send_message("u1", "p1", "  Is the golden visa price final?  ")

    notes = notifier.list_for_user("p1")
    assert len(notes) == 1
    assert notes[0].title == "New Message"
    assert notes[0].message == "Message from Layla"
    assert notes[0].link == "messages"

    entry = audit.list_entries(action="SEND_MESSAGE")[0]
    assert entry.actor_id == "u1"
    assert entry.user_role == "USER"


def test_message_validation(messenger, people):
    with pytest.raises(ValidationFailed) as e:
        messenger.send_message("u1", "p1", "   ")
    assert e.value.code == "empty_message"

    with pytest.raises(ValidationFailed) as e:
        messenger.send_message("u1", "u1", "hello me")
    assert e.value.code == "self_message"


def test_thread_and_conversations(messenger, people, store):
    m1 = messenger.send_message("u1", "p1", "Hi Omar")
    m2 = messenger.send_message("p1", "u1", "Hello Layla")
    m3 = messenger.send_message("p2", "u1", "Can I help?")
    store.update(Collections.MESSAGES, m1, {"timestamp": 1000})
    store.update(Collections.MESSAGES, m2, {"timestamp": 2000})
    store.update(Collections.MESSAGES, m3, {"timestamp": 3000})

    thread = messenger.get_messages("u1", "p1")
    assert [m.content for m in thread] == ["Hi Omar", "Hello Layla"]
    assert messenger.get_messages("p1", "u1") == thread

    convos = messenger.get_conversations("u1")
    assert [c.other_user_id for c in convos] == ["p2", "p1"]
    assert convos[0].other_user_name == "Sara"
    assert convos[0].unread_count == 1
    assert convos[1].last_message == "Hello Layla"
    assert convos[1].unread_count == 1

    assert messenger.mark_conversation_read("u1", "p1") == 1
    convos = {c.other_user_id: c for c in messenger.get_conversations("u1")}
    assert convos["p1"].unread_count == 0
    assert convos["p2"].unread_count == 1


def test_conversation_with_unknown_user(messenger, people):
    messenger.send_message("u1", "ghost", "anyone there?")
    convo = messenger.get_conversations("u1")[0]
    assert convo.other_user_name == "Unknown"
    assert convo.unread_count == 0


def test_notifications_read_state(notifier):
    first = notifier.notify("u1", "New Quote", "Falcon sent a quote")
    notifier.notify("u1", "Quote Accepted", "Yours won", type="success")
    notifier.notify("u2", "Hello", "Someone else")

    assert notifier.unread_count("u1") == 2
    with pytest.raises(Unauthorized):
        notifier.mark_read(first, user_id="u2")

    notifier.mark_read(first, user_id="u1")
    assert notifier.unread_count("u1") == 1
    assert notifier.mark_all_read("u1") == 1
    assert notifier.unread_count("u1") == 0
    assert notifier.unread_count("u2") == 1

    with pytest.raises(NotFound):
        notifier.mark_read("missing")


def test_broadcast_reaches_every_user(notifier, people, audit):
    assert notifier.broadcast("Eid hours", "Support is closed on Friday", actor_id="admin_1") == 3
    for uid in ("u1", "p1", "p2"):
        assert [n.title for n in notifier.list_for_user(uid)] == ["Eid hours"]
    entry = audit.list_entries(action="BROADCAST")[0]
    assert entry.severity == "warning"
    assert entry.actor_id == "admin_1"


def test_notify_is_best_effort(notifier, store, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("store down")

    monkeypatch.setattr(store, "add", boom)
    assert notifier.notify("u1", "New Quote", "lost") is None


def test_audit_log_newest_first_and_filtered(audit, store):
    first = audit.record("u1", "CREATE_REQUEST", "Created request: Golden visa", "USER")
    second = audit.record("p1", "SUBMIT_QUOTE", "Submitted quote", "PROVIDER")
    store.update(Collections.AUDIT_LOGS, first, {"timestamp": 1000})
    store.update(Collections.AUDIT_LOGS, second, {"timestamp": 2000})

    assert [e.id for e in audit.list_entries()] == [second, first]
    assert [e.action for e in audit.list_entries(action="CREATE_REQUEST")] == ["CREATE_REQUEST"]
    assert len(audit.list_entries(limit=1)) == 1
    assert first.startswith("log_")


def test_audit_record_is_best_effort(audit, store, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("store down")

    monkeypatch.setattr(store, "set", boom)
    assert audit.record("u1", "CREATE_REQUEST") is None


def test_ai_interactions(audit):
    audit.record_ai_query("guest_abc", "Guest User", "How much is a freelance visa?")
    audit.record_ai_query("u1", "Layla", "Where is the nearest typing centre?")
    audit.record("u1", "CREATE_REQUEST")

    interactions = {i.user_id: i for i in audit.ai_interactions()}
    assert set(interactions) == {"guest_abc", "u1"}
    assert interactions["u1"].user_name == "Layla"
    assert interactions["guest_abc"].query == "How much is a freelance visa?"

    roles = {e.actor_id: e.user_role for e in audit.list_entries(action=AI_QUERY)}
    assert roles == {"guest_abc": "GUEST", "u1": "USER"}
