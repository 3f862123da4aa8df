"""Tests for the default notification sink."""

from petstay.core.enums import NotificationType
from petstay.services.notification_service import NotificationService, NotificationSink


def test_is_a_sink():
    assert isinstance(NotificationService(), NotificationSink)


def test_notify_and_drain():
    service = NotificationService()
    service.notify("u1", NotificationType.BOOKING, "Hello", "Body", "/order/1")
    service.notify_admins("wallet", "Withdrawal", "Review it")

    (note,) = service.sent_to("u1")
    assert note.title == "Hello"
    assert note.link == "/order/1"

    drained = service.drain()
    assert [n.user_id for n in drained] == ["u1", None]
    assert drained[1].type is NotificationType.WALLET
    assert service.drain() == []


def test_outbox_is_bounded():
    service = NotificationService(max_outbox=3)
    for n in range(5):
        service.notify("u1", NotificationType.BOOKING, f"n{n}", "")

    assert [n.title for n in service.sent_to("u1")] == ["n2", "n3", "n4"]
