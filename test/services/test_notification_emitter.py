import pytest
from unittest.mock import MagicMock, patch
from app.crud import notification as crud_notification
from app.exceptions import TransportError
from app.services import notification_service
from app.services.connection_registry import ConnectionRegistry
from app.services.notification_emitter import NotificationEmitter
from app.schemas.notification import PostSubject

def test_emit_sends_notification_then_unread_count(db_session, emitter, transport, alice, bob):
    notif = crud_notification.create_notification(
        db_session, bob.id, alice.id, "like", "alice liked your post", subject=PostSubject(ref="p1")
    )

    emitter.emit(db_session, notif)

    events = transport.events_for(bob.id)
    assert [event for event, _ in events] == ["notification", "unreadCount"]

    payload = events[0][1]
    assert payload["id"] == notif.id
    assert payload["type"] == "like"
    assert payload["message"] == "alice liked your post"
    assert payload["sender"]["username"] == "alice"
    assert payload["subject"] == {"kind": "post", "ref": "p1"}
    assert payload["is_read"] is False
    assert events[1][1] == {"count": 1}

def test_emit_never_raises_on_transport_failure(db_session, alice, bob):
    failing = MagicMock()
    failing.publish.side_effect = TransportError("socket gone")
    emitter = NotificationEmitter(failing)
    notif = crud_notification.create_notification(db_session, bob.id, alice.id, "follow", "alice started following you")

    emitter.emit(db_session, notif)

    assert failing.publish.call_count == 2

def test_emit_to_offline_recipient_still_publishes(db_session, transport, alice, bob):
    registry = ConnectionRegistry()
    emitter = NotificationEmitter(transport, registry)
    notif = crud_notification.create_notification(db_session, bob.id, alice.id, "follow", "alice started following you")

    emitter.emit(db_session, notif)

    assert len(transport.events_for(bob.id)) == 2

def test_emit_removed_payload(emitter, transport):
    emitter.emit_removed("bob-id", "follow_request", "alice-id", "alice")

    assert transport.published == [
        ("bob-id", "notificationRemoved", {"type": "follow_request", "sender_id": "alice-id", "sender_username": "alice"})
    ]

def test_emit_unread_count_recomputes(db_session, emitter, transport, alice, bob):
    crud_notification.create_notification(db_session, bob.id, alice.id, "like", "alice liked your post")
    crud_notification.create_notification(db_session, bob.id, alice.id, "comment", "alice commented on your post")

    assert emitter.emit_unread_count(db_session, bob.id) == 2
    assert transport.published[-1] == (bob.id, "unreadCount", {"count": 2})

# --- notification_service ---

def test_build_message():
    assert notification_service.build_message("follow_request", "alice") == "alice requested to follow you"
    assert notification_service.build_message("comment", "alice") == "alice commented on your post"

def test_notify_creates_and_emits(db_session, emitter, transport, alice, bob):
    notif = notification_service.notify(
        db_session, emitter, bob.id, alice.id, "comment", "alice commented on your post",
        subject=PostSubject(ref="p9"), comment_text="nice shot"
    )

    assert notif is not None
    assert notif.comment_text == "nice shot"
    assert transport.events_for(bob.id)[0][1]["comment"] == "nice shot"

def test_notify_skips_self_notifications(db_session, emitter, transport, alice):
    assert notification_service.notify(db_session, emitter, alice.id, alice.id, "like", "alice liked your post") is None
    assert transport.published == []

def test_notify_swallows_store_errors(mock_db, emitter, transport):
    """A failing notification must not break the like that triggered it."""
    result = notification_service.notify(mock_db, emitter, "r1", "s1", "like", None)

    assert result is None
    assert transport.published == []

@patch("app.services.notification_service.crud_notification.create_notification")
def test_notify_logs_unexpected_errors(mock_create, mock_db, emitter):
    mock_create.side_effect = RuntimeError("db down")

    with patch("app.services.notification_service.logger") as mock_logger:
        assert notification_service.notify(mock_db, emitter, "r1", "s1", "like", "s1 liked your post") is None
        mock_logger.error.assert_called_once()

def test_withdraw_follow_request(db_session, emitter, transport, alice, bob):
    crud_notification.create_notification(db_session, bob.id, alice.id, "follow_request", "alice requested to follow you")

    deleted = notification_service.withdraw_follow_request(db_session, emitter, bob.id, alice.id, "alice")

    assert deleted == 1
    assert crud_notification.get_unread_count(db_session, bob.id) == 0
    assert transport.events_for(bob.id) == [
        ("notificationRemoved", {"type": "follow_request", "sender_id": alice.id, "sender_username": "alice"}),
        ("unreadCount", {"count": 0}),
    ]
