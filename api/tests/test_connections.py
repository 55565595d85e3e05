import pytest
from sqlalchemy import func, select

from matchlink import repo
from matchlink.models import ConnectionRequest
from matchlink.services.domain import ConnectionStatus, FavoriteKind, HiddenReason
from matchlink.services.errors import Conflict, Forbidden, InvalidTransition, NotFound, ValidationError


@pytest.fixture
def pair(add_member):
    add_member("1", display_name="Asha")
    add_member("2", display_name="Ravi")
    return "1", "2"


def _count_requests(db) -> int:
    with db() as session:
        return session.execute(select(func.count()).select_from(ConnectionRequest)).scalar_one()


def _visibility(db, viewer, candidate):
    with db() as session:
        row = repo.get_compatibility(session, viewer, candidate)
    return row["visible"], row["hidden_reason"]


def test_create_then_accept_notifies_requester(services, pair, notifications_for):
    r1 = services.connections.create("1", "2")
    assert r1.status == ConnectionStatus.PENDING

    accepted = services.connections.accept(r1.id, "2")
    assert accepted.status == ConnectionStatus.ACCEPTED

    assert len(notifications_for("1", "request_accepted")) == 1
    assert len(notifications_for("1", "request_sent")) == 1
    received = notifications_for("2", "request_received")
    assert len(received) == 1
    assert received[0]["message"] == "Asha has sent you a connection request."


def test_sent_and_received_lists_agree_after_accept(services, pair):
    r1 = services.connections.create("1", "2")
    services.connections.accept(r1.id, "2")

    sent = services.connections.list_sent("1")
    received = services.connections.list_received("2")
    assert [(c.id, c.status) for c in sent] == [(r1.id, ConnectionStatus.ACCEPTED)]
    assert [(c.id, c.status) for c in received] == [(r1.id, ConnectionStatus.ACCEPTED)]
    assert services.connections.counts("1") == {"pending_sent": 0, "pending_received": 0, "accepted": 1}


def test_duplicate_create_conflicts_in_either_direction(services, pair, db):
    services.connections.create("1", "2")
    with pytest.raises(Conflict):
        services.connections.create("1", "2")
    with pytest.raises(Conflict):
        services.connections.create("2", "1")
    assert _count_requests(db) == 1


def test_reject_after_accept_and_accept_again(services, pair, notifications_for):
    r1 = services.connections.create("1", "2")
    services.connections.accept(r1.id, "2")

    assert services.connections.reject(r1.id, "2").status == ConnectionStatus.REJECTED
    assert services.connections.accept(r1.id, "2").status == ConnectionStatus.ACCEPTED
    assert len(notifications_for("1", "request_rejected")) == 1
    assert len(notifications_for("1", "request_accepted")) == 2


def test_withdraw_frees_the_pair_for_a_new_request(services, pair):
    r1 = services.connections.create("1", "2")
    withdrawn = services.connections.withdraw(r1.id, "1")
    assert withdrawn.status == ConnectionStatus.WITHDRAWN

    active = [c for c in services.connections.list_received("2") if c.status == ConnectionStatus.PENDING]
    assert active == []

    r2 = services.connections.create("1", "2")
    assert r2.id != r1.id
    assert r2.status == ConnectionStatus.PENDING


def test_withdraw_is_idempotent_without_duplicate_notifications(services, pair, db):
    r1 = services.connections.create("1", "2")
    first = services.connections.withdraw(r1.id, "1")
    with db() as session:
        before = len(repo.list_notifications_for_recipient(session, "2")) + len(
            repo.list_notifications_for_recipient(session, "1")
        )

    again = services.connections.withdraw(r1.id, "1")
    assert again.status == ConnectionStatus.WITHDRAWN
    assert again.updated_at == first.updated_at
    with db() as session:
        after = len(repo.list_notifications_for_recipient(session, "2")) + len(
            repo.list_notifications_for_recipient(session, "1")
        )
    assert after == before


def test_only_the_right_party_may_transition(services, pair, add_member):
    add_member("3")
    r1 = services.connections.create("1", "2")

    with pytest.raises(Forbidden):
        services.connections.accept(r1.id, "1")
    with pytest.raises(Forbidden):
        services.connections.withdraw(r1.id, "2")
    with pytest.raises(Forbidden):
        services.connections.reject(r1.id, "3")
    with pytest.raises(Forbidden):
        services.connections.get(r1.id, "3")
    with pytest.raises(NotFound):
        services.connections.accept("missing", "2")

    assert services.connections.get(r1.id, "2").status == ConnectionStatus.PENDING


def test_illegal_transition_leaves_record_unchanged(services, pair):
    r1 = services.connections.create("1", "2")
    services.connections.accept(r1.id, "2")

    with pytest.raises(InvalidTransition):
        services.connections.withdraw(r1.id, "1")
    assert services.connections.get(r1.id, "1").status == ConnectionStatus.ACCEPTED


def test_create_guards(services, pair, add_member):
    add_member("hidden", visible=False)
    with pytest.raises(ValidationError):
        services.connections.create("1", "1")
    with pytest.raises(NotFound):
        services.connections.create("1", "ghost")
    with pytest.raises(Forbidden):
        services.connections.create("1", "hidden")


def test_create_hides_pair_and_withdraw_restores_it(services, pair, db):
    r1 = services.connections.create("1", "2")
    assert _visibility(db, "1", "2") == (False, HiddenReason.BY_REQUEST.value)
    assert _visibility(db, "2", "1") == (False, HiddenReason.BY_REQUEST.value)

    services.connections.withdraw(r1.id, "1")
    assert _visibility(db, "1", "2") == (True, None)
    assert _visibility(db, "2", "1") == (True, None)


def test_withdraw_with_hide_keeps_target_out_of_requester_feed(services, pair, db):
    r1 = services.connections.create("1", "2")
    services.connections.withdraw(r1.id, "1", hide=True)

    assert _visibility(db, "1", "2") == (False, HiddenReason.BY_REQUEST.value)
    assert _visibility(db, "2", "1") == (True, None)
    with pytest.raises(Forbidden):
        services.connections.create("1", "2")


def test_cancel_falls_back_to_favorite_hide(services, pair, db):
    services.favorites.toggle("1", "2", FavoriteKind.SHORTLIST)
    r1 = services.connections.create("1", "2")
    services.connections.accept(r1.id, "2")

    services.connections.cancel(r1.id, "2")
    assert _visibility(db, "1", "2") == (False, HiddenReason.BY_FAVORITE.value)
    assert _visibility(db, "2", "1") == (True, None)


def test_cancel_notifies_counterpart_or_both_for_operator(services, pair, add_member, notifications_for):
    r1 = services.connections.create("1", "2")
    cancelled = services.connections.cancel(r1.id, "1")
    assert cancelled.status == ConnectionStatus.CANCELLED
    assert len(notifications_for("2", "request_cancelled")) == 1
    assert notifications_for("1", "request_cancelled") == []
    assert services.connections.list_sent("1") == []

    r2 = services.connections.create("2", "1")
    services.connections.cancel(r2.id, operator=True)
    assert len(notifications_for("1", "request_cancelled")) == 1
    assert len(notifications_for("2", "request_cancelled")) == 2

    services.connections.cancel(r2.id, operator=True)
    assert len(notifications_for("2", "request_cancelled")) == 2


def test_racing_create_loses_on_the_active_pair_index(services, pair, db, monkeypatch):
    services.connections.create("1", "2")

    # Both racers passed the pre-checks before either committed.
    monkeypatch.setattr(repo, "find_active_request_for_pair", lambda session, key: None)
    monkeypatch.setattr(services.compatibility, "is_discoverable", lambda session, viewer, candidate: True)

    with pytest.raises(Conflict):
        services.connections.create("2", "1")
    assert _count_requests(db) == 1


def test_lost_transition_race_reports_current_state(services, pair, monkeypatch):
    r1 = services.connections.create("1", "2")
    services.connections.withdraw(r1.id, "1")

    # The accept reads "pending" but the conditional update finds "withdrawn".
    real_get = repo.get_connection_request
    calls = {"n": 0}

    def stale_get(session, request_id):
        row = real_get(session, request_id)
        calls["n"] += 1
        if calls["n"] == 1:
            row = dict(row, status="pending")
        return row

    monkeypatch.setattr(repo, "get_connection_request", stale_get)
    with pytest.raises(InvalidTransition) as exc:
        services.connections.accept(r1.id, "2")
    assert exc.value.current == "withdrawn"


def test_at_most_one_active_request_per_pair(services, pair, add_member, db):
    add_member("3")
    r1 = services.connections.create("1", "2")
    services.connections.withdraw(r1.id, "1")
    r2 = services.connections.create("2", "1")
    services.connections.reject(r2.id, "1")
    services.connections.create("1", "3")

    with db() as session:
        rows = session.execute(
            select(ConnectionRequest.active_pair_key, func.count())
            .where(ConnectionRequest.active_pair_key.is_not(None))
            .group_by(ConnectionRequest.active_pair_key)
        ).all()
    assert all(count == 1 for _, count in rows)
    assert len(rows) == 2
