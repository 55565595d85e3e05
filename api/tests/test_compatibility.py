from datetime import datetime, timedelta, timezone

import pytest

from matchlink import repo
from matchlink.container import build_services
from matchlink.services.compat_cache import CompatibilityCache, ScoreEntry
from matchlink.services.domain import HiddenReason
from matchlink.services.errors import NotFound, ValidationError


def test_get_or_compute_persists_a_bounded_record(services, add_member, db):
    add_member("alice", expectations={"age": {"from": 25, "to": 30}})
    add_member("bob", attributes={"age": 27, "community": "Tamil"})

    with db() as session:
        record = services.compatibility.get_or_compute(session, "alice", "bob")
        session.commit()
        stored = repo.get_compatibility(session, "alice", "bob")

    assert 0 <= record.score <= 100
    assert record.visible is True
    assert record.hidden_reason is None
    assert stored["score"] == record.score
    assert "Age within preferred range" in record.reasons


def test_records_are_directional(services, add_member, db):
    add_member("alice", attributes={"age": 50}, expectations={"age": {"from": 25, "to": 30}})
    add_member("bob", attributes={"age": 27}, expectations={"age": {"from": 45, "to": 55}})

    with db() as session:
        a_to_b = services.compatibility.get_or_compute(session, "alice", "bob")
        b_to_a = services.compatibility.get_or_compute(session, "bob", "alice")
        session.commit()

    assert a_to_b.viewer_id == "alice" and b_to_a.viewer_id == "bob"
    assert (a_to_b.candidate_id, b_to_a.candidate_id) == ("bob", "alice")


def test_self_and_unknown_members_are_rejected(services, add_member, db):
    add_member("alice")
    with db() as session:
        with pytest.raises(ValidationError):
            services.compatibility.get_or_compute(session, "alice", "alice")
        with pytest.raises(NotFound):
            services.compatibility.get_or_compute(session, "alice", "ghost")


def test_profile_update_triggers_recompute_but_keeps_visibility(services, add_member, db):
    add_member("alice", expectations={"age": {"from": 25, "to": 30}})
    add_member("bob", attributes={"age": 27})

    with db() as session:
        first = services.compatibility.get_or_compute(session, "alice", "bob")
        services.compatibility.hide(session, "alice", "bob", HiddenReason.BY_FAVORITE)
        session.commit()

    later = datetime.now(timezone.utc) + timedelta(minutes=5)
    add_member("bob", attributes={"age": 60}, profile_updated_at=later)

    with db() as session:
        second = services.compatibility.get_or_compute(session, "alice", "bob")
        session.commit()

    assert second.score < first.score
    assert second.computed_at >= later
    assert second.visible is False
    assert second.hidden_reason == HiddenReason.BY_FAVORITE


def test_is_discoverable_respects_directory_and_hide_reason(services, add_member, db):
    add_member("alice")
    add_member("bob")
    add_member("carol", approved=False)

    with db() as session:
        assert services.compatibility.is_discoverable(session, "alice", "bob")
        assert not services.compatibility.is_discoverable(session, "alice", "carol")

        services.compatibility.hide(session, "alice", "bob", HiddenReason.BY_FAVORITE)
        assert services.compatibility.is_discoverable(session, "alice", "bob")

        services.compatibility.hide(session, "alice", "bob", HiddenReason.BY_REQUEST)
        assert not services.compatibility.is_discoverable(session, "alice", "bob")

        repo.create_block(session, "bob", "alice")
        services.compatibility.restore_visibility(session, "alice", "bob")
        assert not services.compatibility.is_discoverable(session, "alice", "bob")
        session.commit()


def test_ranked_matches_orders_and_pages(services, add_member, db):
    add_member("viewer", expectations={"age": {"from": 25, "to": 30}})
    add_member("c1", attributes={"age": 27})
    add_member("c2", attributes={"age": 27})
    add_member("c3", attributes={"age": 45})
    add_member("hidden", visible=False, attributes={"age": 27})

    with db() as session:
        first_page, cursor = services.compatibility.ranked_matches(session, "viewer", cursor=0, limit=2)
        second_page, end = services.compatibility.ranked_matches(session, "viewer", cursor=cursor, limit=2)
        session.commit()

    assert [m["candidate_id"] for m in first_page] == ["c1", "c2"]
    assert cursor == 2
    assert [m["candidate_id"] for m in second_page] == ["c3"]
    assert end is None

    with db() as session:
        services.compatibility.hide(session, "viewer", "c1", HiddenReason.BY_FAVORITE)
        page, _ = services.compatibility.ranked_matches(session, "viewer", cursor=0, limit=10)
        session.commit()
    assert "c1" not in [m["candidate_id"] for m in page]


def _candidates(services, session, viewer_id):
    page, _ = services.compatibility.ranked_matches(session, viewer_id, cursor=0, limit=50)
    return [m["candidate_id"] for m in page]


def test_hide_committed_after_a_cached_read_is_honoured(services, add_member, db):
    add_member("1")
    add_member("2")
    with db() as reader:
        assert _candidates(services, reader, "1") == ["2"]
        reader.commit()

    with db() as writer:
        services.compatibility.hide_pair(writer, "1", "2", HiddenReason.BY_REQUEST)
        with db() as reader:
            assert _candidates(services, reader, "1") == ["2"]
        writer.commit()

    with db() as reader:
        assert repo.get_compatibility(reader, "1", "2")["visible"] is False
        assert _candidates(services, reader, "1") == []


def test_hide_from_another_container_is_honoured(services, add_member, db):
    add_member("1")
    add_member("2")
    other = build_services(db, notify_workers=0, reaper_interval_seconds=0)
    try:
        with db() as session:
            assert _candidates(services, session, "1") == ["2"]
            session.commit()

        other.connections.create("1", "2")

        with db() as session:
            assert _candidates(services, session, "1") == []
            record = services.compatibility.get_or_compute(session, "1", "2")
        assert record.hidden_reason == HiddenReason.BY_REQUEST
    finally:
        other.dispatcher.shutdown()


def test_cache_evicts_least_recently_used_and_expires():
    clock = {"t": 0.0}
    stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)
    entries = {name: ScoreEntry(score=score, reasons=(), computed_at=stamp) for name, score in [("b", 1), ("c", 2), ("d", 3)]}
    cache = CompatibilityCache(max_entries=2, ttl_seconds=10, clock=lambda: clock["t"])
    cache.set(("a", "b"), entries["b"])
    cache.set(("a", "c"), entries["c"])
    assert cache.get(("a", "b")) == entries["b"]
    cache.set(("a", "d"), entries["d"])
    assert cache.get(("a", "c")) is None
    assert len(cache) == 2

    clock["t"] = 11.0
    assert cache.get(("a", "b")) is None
    assert cache.get(("a", "d")) is None
