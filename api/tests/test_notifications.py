import pytest

from matchlink import repo
from matchlink.services.domain import ConnectionStatus, NotificationEvent, NotificationType
from matchlink.services.errors import NotFound
from matchlink.services.notifications import NotificationDispatcher
from matchlink.services.notify_templates import render_notification


@pytest.fixture
def pair(add_member):
    add_member("1", display_name="Asha")
    add_member("2", display_name="Ravi")


def test_one_record_per_recipient_even_when_redelivered(services, pair, notifications_for):
    event = NotificationEvent(
        id="evt-1",
        type=NotificationType.SYSTEM,
        recipients=["1", "2", "1"],
        meta={"text": "Scheduled maintenance tonight"},
    )
    services.dispatcher.dispatch(event)
    services.dispatcher.dispatch(event)

    assert len(notifications_for("1", "system")) == 1
    assert len(notifications_for("2", "system")) == 1
    assert notifications_for("1")[0]["message"] == "Scheduled maintenance tonight"


def test_dispatch_failure_does_not_undo_the_transition(services, pair, monkeypatch, notifications_for):
    def broken(*args, **kwargs):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr(repo, "insert_notification", broken)
    r1 = services.connections.create("1", "2")
    accepted = services.connections.accept(r1.id, "2")

    assert accepted.status == ConnectionStatus.ACCEPTED
    assert services.connections.get(r1.id, "1").status == ConnectionStatus.ACCEPTED
    monkeypatch.undo()
    assert notifications_for("1") == []


def test_threaded_dispatcher_drains(db, pair, notifications_for):
    dispatcher = NotificationDispatcher(db, workers=1)
    try:
        for i in range(5):
            dispatcher.dispatch(
                NotificationEvent(id=f"evt-{i}", type=NotificationType.LIKE, recipients=["2"], actor_id="1")
            )
        dispatcher.drain(timeout=10)
    finally:
        dispatcher.shutdown()
    assert len(notifications_for("2", "like")) == 5


def test_dispatch_after_shutdown_is_dropped(db, pair, notifications_for):
    dispatcher = NotificationDispatcher(db, workers=1)
    dispatcher.shutdown()
    dispatcher.dispatch(NotificationEvent(id="late", type=NotificationType.LIKE, recipients=["2"]))
    assert notifications_for("2") == []


def test_read_side(services, pair, db):
    services.favorites.toggle("1", "2", "shortlist")
    with db() as session:
        items = services.dispatcher.list_for_member(session, "2")
        assert services.dispatcher.unread_count(session, "2") == 1
        services.dispatcher.mark_read(session, "2", items[0]["id"])
        session.commit()
        assert services.dispatcher.unread_count(session, "2") == 0
        with pytest.raises(NotFound):
            services.dispatcher.mark_read(session, "1", items[0]["id"])

    assert items[0]["type"] == "like"
    assert items[0]["message"] == "Asha has added you to their shortlist."
    assert "idempotency_key" not in items[0]


def test_templates_fall_back_for_unknown_names():
    title, message = render_notification(NotificationType.REQUEST_ACCEPTED, {"actor": None})
    assert title == "Request accepted"
    assert message == "Someone has accepted your connection request."
