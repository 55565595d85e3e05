import uuid
from datetime import date, datetime, timezone
from typing import Any, Iterable

from sqlalchemy import delete, func, insert, literal, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite

from .models import CompatibilityRecord, ConnectionRequest, FavoriteEdge, Member, MemberBlock, Notification, ProfileView

member_t = Member.__table__
block_t = MemberBlock.__table__
compat_t = CompatibilityRecord.__table__
request_t = ConnectionRequest.__table__
favorite_t = FavoriteEdge.__table__
view_t = ProfileView.__table__
notification_t = Notification.__table__


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _upsert(db, table, values: dict[str, Any], index_elements: list[str], update_columns: Iterable[str]):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(table).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite.insert(table).values(**values)
    else:
        raise RuntimeError(f"Unsupported dialect for upsert: {dialect}")
    return stmt.on_conflict_do_update(
        index_elements=index_elements,
        set_={col: stmt.excluded[col] for col in update_columns},
    )


# ---------------------------------------------------------------------------
# Members (owned by the account subsystem; read-only to the engine except for seeding)
# ---------------------------------------------------------------------------


def get_member(db, member_id: str) -> dict[str, Any] | None:
    row = db.execute(select(member_t).where(member_t.c.id == member_id)).mappings().first()
    return dict(row) if row else None


def get_members(db, member_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
    ids = list({str(m) for m in member_ids})
    if not ids:
        return {}
    rows = db.execute(select(member_t).where(member_t.c.id.in_(ids))).mappings().all()
    return {str(r["id"]): dict(r) for r in rows}


def list_discoverable_member_rows(db, exclude_member_id: str) -> list[dict[str, Any]]:
    rows = db.execute(
        select(member_t)
        .where(
            member_t.c.id != exclude_member_id,
            member_t.c.approved.is_(True),
            member_t.c.visible.is_(True),
        )
        .order_by(member_t.c.id)
    ).mappings().all()
    return [dict(r) for r in rows]


def list_block_counterparts(db, member_id: str) -> set[str]:
    """Members blocked by, or blocking, member_id."""
    rows = db.execute(
        select(block_t.c.member_id, block_t.c.blocked_member_id).where(
            or_(block_t.c.member_id == member_id, block_t.c.blocked_member_id == member_id)
        )
    ).mappings().all()
    out: set[str] = set()
    for r in rows:
        a = str(r["member_id"])
        b = str(r["blocked_member_id"])
        out.add(b if a == member_id else a)
    return out


def upsert_member(
    db,
    *,
    member_id: str,
    display_name: str | None = None,
    visible: bool = True,
    approved: bool = True,
    attributes: dict[str, Any] | None = None,
    expectations: dict[str, Any] | None = None,
    profile_updated_at: datetime | None = None,
) -> None:
    now = profile_updated_at or _now_utc()
    values = {
        "id": member_id,
        "display_name": display_name,
        "visible": visible,
        "approved": approved,
        "attributes": attributes or {},
        "expectations": expectations or {},
        "profile_updated_at": now,
        "created_at": now,
    }
    db.execute(
        _upsert(
            db,
            member_t,
            values,
            ["id"],
            ["display_name", "visible", "approved", "attributes", "expectations", "profile_updated_at"],
        )
    )


def create_block(db, member_id: str, blocked_member_id: str) -> bool:
    exists = db.execute(
        select(block_t.c.id).where(
            block_t.c.member_id == member_id,
            block_t.c.blocked_member_id == blocked_member_id,
        )
    ).first()
    if exists:
        return False
    db.execute(
        insert(block_t).values(
            id=str(uuid.uuid4()),
            member_id=member_id,
            blocked_member_id=blocked_member_id,
            created_at=_now_utc(),
        )
    )
    return True


# ---------------------------------------------------------------------------
# Compatibility records
# ---------------------------------------------------------------------------


def get_compatibility(db, viewer_id: str, candidate_id: str) -> dict[str, Any] | None:
    row = db.execute(
        select(compat_t).where(compat_t.c.viewer_id == viewer_id, compat_t.c.candidate_id == candidate_id)
    ).mappings().first()
    return dict(row) if row else None


def get_compatibility_visibility(db, viewer_id: str, candidate_id: str) -> dict[str, Any] | None:
    row = db.execute(
        select(compat_t.c.visible, compat_t.c.hidden_reason).where(
            compat_t.c.viewer_id == viewer_id, compat_t.c.candidate_id == candidate_id
        )
    ).mappings().first()
    return dict(row) if row else None


def upsert_compatibility_score(
    db,
    *,
    viewer_id: str,
    candidate_id: str,
    score: int,
    reasons: list[str],
    computed_at: datetime,
) -> dict[str, Any]:
    """Write score/reasons; visibility columns of an existing record are left alone."""
    values = {
        "viewer_id": viewer_id,
        "candidate_id": candidate_id,
        "score": score,
        "reasons": reasons,
        "visible": True,
        "hidden_reason": None,
        "computed_at": computed_at,
    }
    db.execute(_upsert(db, compat_t, values, ["viewer_id", "candidate_id"], ["score", "reasons", "computed_at"]))
    return get_compatibility(db, viewer_id, candidate_id) or values


def set_compatibility_visibility(
    db,
    *,
    viewer_id: str,
    candidate_id: str,
    visible: bool,
    hidden_reason: str | None,
) -> int:
    res = db.execute(
        update(compat_t)
        .where(compat_t.c.viewer_id == viewer_id, compat_t.c.candidate_id == candidate_id)
        .values(visible=visible, hidden_reason=hidden_reason)
    )
    return int(res.rowcount or 0)


# ---------------------------------------------------------------------------
# Connection requests
# ---------------------------------------------------------------------------


def insert_connection_request(
    db,
    *,
    requester_id: str,
    target_id: str,
    status: str,
    active_pair_key: str | None,
    now: datetime,
) -> dict[str, Any]:
    request_id = str(uuid.uuid4())
    db.execute(
        insert(request_t).values(
            id=request_id,
            requester_id=requester_id,
            target_id=target_id,
            status=status,
            active_pair_key=active_pair_key,
            created_at=now,
            updated_at=now,
        )
    )
    return get_connection_request(db, request_id)


def get_connection_request(db, request_id: str) -> dict[str, Any] | None:
    row = db.execute(select(request_t).where(request_t.c.id == request_id)).mappings().first()
    return dict(row) if row else None


def find_active_request_for_pair(db, active_pair_key: str) -> dict[str, Any] | None:
    row = db.execute(select(request_t).where(request_t.c.active_pair_key == active_pair_key)).mappings().first()
    return dict(row) if row else None


def compare_and_set_request_status(
    db,
    *,
    request_id: str,
    expected_statuses: Iterable[str],
    new_status: str,
    release_pair: bool,
    now: datetime,
) -> int:
    values: dict[str, Any] = {"status": new_status, "updated_at": now}
    if release_pair:
        values["active_pair_key"] = None
    res = db.execute(
        update(request_t)
        .where(request_t.c.id == request_id, request_t.c.status.in_(list(expected_statuses)))
        .values(**values)
    )
    return int(res.rowcount or 0)


def list_requests_sent(db, member_id: str, exclude_statuses: Iterable[str] = ("cancelled",)) -> list[dict[str, Any]]:
    rows = db.execute(
        select(request_t)
        .where(request_t.c.requester_id == member_id, request_t.c.status.notin_(list(exclude_statuses)))
        .order_by(request_t.c.created_at.desc(), request_t.c.id)
    ).mappings().all()
    return [dict(r) for r in rows]


def list_requests_received(db, member_id: str, exclude_statuses: Iterable[str] = ("cancelled",)) -> list[dict[str, Any]]:
    rows = db.execute(
        select(request_t)
        .where(request_t.c.target_id == member_id, request_t.c.status.notin_(list(exclude_statuses)))
        .order_by(request_t.c.created_at.desc(), request_t.c.id)
    ).mappings().all()
    return [dict(r) for r in rows]


def count_requests(db, member_id: str) -> dict[str, int]:
    sent = db.execute(
        select(func.count()).select_from(request_t).where(
            request_t.c.requester_id == member_id, request_t.c.status == "pending"
        )
    ).scalar_one()
    received = db.execute(
        select(func.count()).select_from(request_t).where(
            request_t.c.target_id == member_id, request_t.c.status == "pending"
        )
    ).scalar_one()
    accepted = db.execute(
        select(func.count()).select_from(request_t).where(
            or_(request_t.c.requester_id == member_id, request_t.c.target_id == member_id),
            request_t.c.status == "accepted",
        )
    ).scalar_one()
    return {"pending_sent": int(sent), "pending_received": int(received), "accepted": int(accepted)}


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------


def favorite_exists(db, owner_id: str, target_id: str, kind: str) -> bool:
    row = db.execute(
        select(favorite_t.c.id).where(
            favorite_t.c.owner_id == owner_id,
            favorite_t.c.target_id == target_id,
            favorite_t.c.kind == kind,
        )
    ).first()
    return bool(row)


def insert_favorite(db, *, owner_id: str, target_id: str, kind: str, now: datetime, cap: int | None = None) -> bool:
    """Append an edge at the next position of (owner, kind); refuse when ``cap`` entries exist.

    Counting, numbering and inserting happen in one statement. Two writers that
    read the same list state pick the same position and the second one fails
    on ``uq_favorite_edge_position``.
    """
    same_list = (favorite_t.c.owner_id == owner_id, favorite_t.c.kind == kind)
    next_position = (
        select(func.coalesce(func.max(favorite_t.c.position), 0) + 1).where(*same_list).correlate(None).scalar_subquery()
    )
    row = select(
        literal(str(uuid.uuid4()), favorite_t.c.id.type),
        literal(owner_id, favorite_t.c.owner_id.type),
        literal(target_id, favorite_t.c.target_id.type),
        literal(kind, favorite_t.c.kind.type),
        literal(now, favorite_t.c.created_at.type),
        next_position,
    )
    if cap is not None:
        current = select(func.count()).select_from(favorite_t).where(*same_list).correlate(None).scalar_subquery()
        row = row.where(current < cap)
    res = db.execute(
        insert(favorite_t).from_select(
            ["id", "owner_id", "target_id", "kind", "created_at", "position"],
            row,
        )
    )
    return bool(res.rowcount)


def delete_favorite(db, *, owner_id: str, target_id: str, kind: str) -> int:
    res = db.execute(
        delete(favorite_t).where(
            favorite_t.c.owner_id == owner_id,
            favorite_t.c.target_id == target_id,
            favorite_t.c.kind == kind,
        )
    )
    return int(res.rowcount or 0)


def list_favorites(db, owner_id: str, kind: str, *, insertion_order: bool) -> list[dict[str, Any]]:
    order = [favorite_t.c.position.asc()] if insertion_order else [favorite_t.c.position.desc()]
    rows = db.execute(
        select(favorite_t.c.target_id, favorite_t.c.kind, favorite_t.c.created_at)
        .where(favorite_t.c.owner_id == owner_id, favorite_t.c.kind == kind)
        .order_by(*order)
    ).mappings().all()
    return [dict(r) for r in rows]


# ---------------------------------------------------------------------------
# Profile views
# ---------------------------------------------------------------------------


def insert_profile_view(
    db,
    *,
    viewer_id: str,
    candidate_id: str,
    viewed_at: datetime,
    week_start_date: date,
    week_number: int,
) -> dict[str, Any]:
    view_id = str(uuid.uuid4())
    values = {
        "id": view_id,
        "viewer_id": viewer_id,
        "candidate_id": candidate_id,
        "viewed_at": viewed_at,
        "week_start_date": week_start_date,
        "week_number": week_number,
    }
    db.execute(insert(view_t).values(**values))
    return values


def count_views_between(db, *, viewer_id: str, candidate_id: str, start: datetime, end: datetime) -> int:
    return int(
        db.execute(
            select(func.count()).select_from(view_t).where(
                view_t.c.viewer_id == viewer_id,
                view_t.c.candidate_id == candidate_id,
                view_t.c.viewed_at >= start,
                view_t.c.viewed_at < end,
            )
        ).scalar_one()
    )


def list_views_for_candidate(db, candidate_id: str, since: datetime, limit: int = 100) -> list[dict[str, Any]]:
    rows = db.execute(
        select(view_t)
        .where(view_t.c.candidate_id == candidate_id, view_t.c.viewed_at >= since)
        .order_by(view_t.c.viewed_at.desc())
        .limit(limit)
    ).mappings().all()
    return [dict(r) for r in rows]


def list_views_by_viewer(db, viewer_id: str, since: datetime, limit: int = 100) -> list[dict[str, Any]]:
    rows = db.execute(
        select(view_t)
        .where(view_t.c.viewer_id == viewer_id, view_t.c.viewed_at >= since)
        .order_by(view_t.c.viewed_at.desc())
        .limit(limit)
    ).mappings().all()
    return [dict(r) for r in rows]


def weekly_view_counts(db, candidate_id: str, since: datetime) -> list[dict[str, Any]]:
    rows = db.execute(
        select(
            view_t.c.week_start_date,
            view_t.c.week_number,
            func.count().label("views"),
            func.count(func.distinct(view_t.c.viewer_id)).label("unique_viewers"),
        )
        .where(view_t.c.candidate_id == candidate_id, view_t.c.viewed_at >= since)
        .group_by(view_t.c.week_start_date, view_t.c.week_number)
        .order_by(view_t.c.week_start_date.desc())
    ).mappings().all()
    return [dict(r) for r in rows]


def delete_views_before(db, cutoff: datetime) -> int:
    res = db.execute(delete(view_t).where(view_t.c.viewed_at < cutoff))
    return int(res.rowcount or 0)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


def insert_notification(
    db,
    *,
    recipient_id: str,
    notification_type: str,
    title: str,
    message: str,
    meta: dict[str, Any],
    idempotency_key: str,
    now: datetime,
) -> dict[str, Any]:
    values = {
        "id": str(uuid.uuid4()),
        "recipient_id": recipient_id,
        "type": notification_type,
        "title": title,
        "message": message,
        "is_read": False,
        "meta": meta,
        "idempotency_key": idempotency_key,
        "created_at": now,
    }
    db.execute(insert(notification_t).values(**values))
    return values


def list_notifications_for_recipient(
    db,
    recipient_id: str,
    *,
    unread_only: bool = False,
    limit: int = 50,
) -> list[dict[str, Any]]:
    stmt = select(notification_t).where(notification_t.c.recipient_id == recipient_id)
    if unread_only:
        stmt = stmt.where(notification_t.c.is_read.is_(False))
    rows = db.execute(stmt.order_by(notification_t.c.created_at.desc()).limit(limit)).mappings().all()
    return [dict(r) for r in rows]


def count_unread_notifications(db, recipient_id: str) -> int:
    return int(
        db.execute(
            select(func.count()).select_from(notification_t).where(
                notification_t.c.recipient_id == recipient_id,
                notification_t.c.is_read.is_(False),
            )
        ).scalar_one()
    )


def mark_notification_read(db, *, notification_id: str, recipient_id: str) -> int:
    res = db.execute(
        update(notification_t)
        .where(notification_t.c.id == notification_id, notification_t.c.recipient_id == recipient_id)
        .values(is_read=True)
    )
    return int(res.rowcount or 0)
