import pytest
from unittest.mock import MagicMock
from app.client.api import AuthExpired, TransientFetchError
from app.client.session import NotificationSession
from app.schemas.notification import NotificationPage

def _payload(id, type="like", sender_id="u-alice", username="alice", created_at="2026-03-01T12:00:00+00:00"):
    return {
        "id": id,
        "type": type,
        "message": f"{username} did {type}",
        "sender": {"id": sender_id, "username": username},
        "created_at": created_at,
    }

@pytest.fixture
def api():
    return MagicMock()

@pytest.fixture
def session(api):
    return NotificationSession(api, on_logout=MagicMock())


class FakeSource:
    def __init__(self):
        self.handlers = {}

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def off(self, event, handler):
        self.handlers[event].remove(handler)

    def emit(self, event, data):
        for handler in list(self.handlers.get(event, [])):
            handler(data)


def test_refresh_fills_cache(session, api):
    api.fetch.return_value = NotificationPage.model_validate({
        "notifications": [_payload("n1")],
        "unread_count": 1,
        "has_more": False,
    })

    assert session.refresh() is True

    assert [e.id for e in session.cache.snapshot()] == ["n1"]
    assert session.cache.unread_count == 1
    api.fetch.assert_called_once_with(1, 20)

def test_auth_expired_signs_out_and_keeps_cache(session, api):
    session.handle_event("notification", _payload("n1"))
    api.fetch.side_effect = AuthExpired("Session expired")

    assert session.refresh() is False

    api.credentials.clear.assert_called_once()
    session.on_logout.assert_called_once()
    assert len(session.cache) == 1

def test_transient_error_is_surfaced_and_dismissable(session, api):
    session.handle_event("notification", _payload("n1"))
    api.fetch.side_effect = TransientFetchError("GET /notifications/ failed with status 503")

    assert session.refresh() is False

    assert "503" in session.last_error
    assert len(session.cache) == 1
    session.on_logout.assert_not_called()
    session.dismiss_error()
    assert session.last_error is None

def test_handle_event_dispatch(session):
    session.handle_event("notification", _payload("r1", "follow_request"))
    session.handle_event("unreadCount", {"count": 1})
    assert session.cache.unread_count == 1

    session.handle_event("notificationRemoved", {"type": "follow_request", "sender_id": "u-alice"})
    assert len(session.cache) == 0

    session.handle_event("somethingElse", {})

def test_push_is_delivered_once():
    delivery = MagicMock()
    session = NotificationSession(MagicMock(), delivery=delivery)

    session.handle_event("notification", _payload("r2", "follow_request", created_at="2026-03-01T12:05:00+00:00"))
    # Older request arriving late is not shown again
    session.handle_event("notification", _payload("r1", "follow_request"))

    delivery.deliver.assert_called_once()

def test_attach_and_detach(session):
    source = FakeSource()
    detach = session.attach(source)

    source.emit("unreadCount", {"count": 3})
    assert session.cache.unread_count == 3

    detach()
    source.emit("unreadCount", {"count": 7})
    assert session.cache.unread_count == 3
    assert all(not handlers for handlers in source.handlers.values())

def test_reattach_replaces_previous_subscription(session):
    first, second = FakeSource(), FakeSource()
    session.attach(first)
    session.attach(second)

    first.emit("unreadCount", {"count": 5})
    assert session.cache.unread_count == 0

    session.close()
    assert all(not handlers for handlers in second.handlers.values())

def test_mark_read_uses_server_count(session, api):
    session.handle_event("notification", _payload("n1"))
    api.mark_read.return_value = 0

    assert session.mark_read("n1") is True

    assert session.cache.find("n1").is_read is True
    assert session.cache.unread_count == 0

def test_mark_all_read_recounts(session, api):
    session.handle_event("notification", _payload("n1"))
    api.mark_all_read.return_value = 1
    api.unread_count.return_value = 2

    assert session.mark_all_read() is True

    assert all(e.is_read for e in session.cache.snapshot())
    assert session.cache.unread_count == 2

def test_delete(session, api):
    session.handle_event("notification", _payload("n1"))
    assert session.delete("n1") is True
    assert len(session.cache) == 0
    api.delete.assert_called_once_with("n1")

def test_accept_request_removes_sender_requests(session, api):
    session.handle_event("notification", _payload("r1", "follow_request"))

    assert session.accept_request("r1") is True

    api.accept_follow_request.assert_called_once_with("alice")
    assert session.cache.matching("follow_request", "u-alice") == ()

def test_failed_reject_reverts_flag(session, api):
    session.handle_event("notification", _payload("r1", "follow_request"))
    api.reject_follow_request.side_effect = TransientFetchError("offline")

    assert session.reject_request("r1") is False

    entry = session.cache.find("r1")
    assert entry.is_rejected is False
    assert session.last_error == "offline"

def test_respond_ignores_non_requests(session, api):
    session.handle_event("notification", _payload("n1", "like"))
    assert session.accept_request("n1") is False
    assert session.accept_request("missing") is False
    api.accept_follow_request.assert_not_called()

def _page(notifications, unread_count=0, has_more=False):
    return NotificationPage.model_validate({
        "notifications": notifications,
        "unread_count": unread_count,
        "has_more": has_more,
    })

def test_load_more_keeps_earlier_pages(session, api):
    api.fetch.side_effect = [
        _page([_payload("n1", created_at="2026-03-01T12:02:00+00:00"), _payload("n2", created_at="2026-03-01T12:01:00+00:00")], 3, has_more=True),
        _page([_payload("n3")], 3, has_more=False),
    ]

    assert session.refresh(limit=2) is True
    assert session.load_more() is True

    assert [e.id for e in session.cache.snapshot()] == ["n1", "n2", "n3"]
    assert session.has_more is False
    assert api.fetch.call_args_list[1][0] == (2, 2)
    # Nothing left to load
    assert session.load_more() is False
    assert api.fetch.call_count == 2

def test_failed_load_more_keeps_page(session, api):
    api.fetch.side_effect = [
        _page([_payload("n1")], 1, has_more=True),
        TransientFetchError("offline"),
    ]
    session.refresh()

    assert session.load_more() is False
    assert session.page == 1
    assert session.has_more is True
    assert [e.id for e in session.cache.snapshot()] == ["n1"]
