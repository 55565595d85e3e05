"""
Shortlist and compare sets.

A favorite edge is written with a single conditional insert that also assigns
its position, so the compare cap holds under concurrent toggles. Writers that
collide on the same position retry against the new list state.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError

from .. import repo
from ..config import COMPARE_MAX
from .compatibility import CompatibilityEngine
from .directory import ProfileDirectory, guard_not_self
from .domain import FavoriteKind, NotificationEvent, NotificationType, as_utc
from .errors import Conflict, ValidationError
from .notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

WRITE_ATTEMPTS = 3


def parse_kind(kind: str | FavoriteKind) -> FavoriteKind:
    try:
        return FavoriteKind(kind)
    except ValueError:
        raise ValidationError("unknown_kind", f"Unknown favorite kind: {kind}")


class FavoritesRegistry:
    """Shortlist and compare sets per member.

    Shortlisting somebody takes them out of the owner's match feed (hidden
    ``by_favorite`` unless an active request already hides them ``by_request``)
    and sends them a ``like``. The compare set is capped and
    has no side effects.
    """

    def __init__(
        self,
        session_factory: Callable[[], Any],
        directory: ProfileDirectory,
        compatibility: CompatibilityEngine,
        dispatcher: NotificationDispatcher,
        compare_max: int = COMPARE_MAX,
    ) -> None:
        self._session_factory = session_factory
        self.directory = directory
        self.compatibility = compatibility
        self.dispatcher = dispatcher
        self.compare_max = compare_max

    def toggle(self, owner_id: str, target_id: str, kind: str | FavoriteKind, on: bool | None = None) -> bool:
        kind = parse_kind(kind)
        guard_not_self(owner_id, target_id)
        for attempt in range(1, WRITE_ATTEMPTS + 1):
            try:
                wanted, changed = self._apply(owner_id, target_id, kind, on)
                break
            except IntegrityError as exc:
                logger.info("[favorites] concurrent write owner=%s kind=%s attempt=%s", owner_id, kind.value, attempt)
                if attempt == WRITE_ATTEMPTS:
                    raise Conflict("favorite_busy", "Favorites changed concurrently, try again") from exc
        if not changed:
            return wanted

        logger.info("[favorites] %s owner=%s target=%s kind=%s", "added" if wanted else "removed", owner_id, target_id, kind.value)
        if wanted and kind == FavoriteKind.SHORTLIST:
            self.dispatcher.dispatch(
                NotificationEvent(
                    id=str(uuid.uuid4()),
                    type=NotificationType.LIKE,
                    recipients=[target_id],
                    actor_id=owner_id,
                    subject_id=target_id,
                )
            )
        return wanted

    def _apply(self, owner_id: str, target_id: str, kind: FavoriteKind, on: bool | None) -> tuple[bool, bool]:
        now = datetime.now(timezone.utc)
        with self._session_factory() as db:
            self.directory.ensure_exists(db, owner_id, target_id)
            present = repo.favorite_exists(db, owner_id, target_id, kind.value)
            wanted = (not present) if on is None else bool(on)
            if wanted == present:
                return present, False

            if wanted:
                cap = self.compare_max if kind == FavoriteKind.COMPARE else None
                if not repo.insert_favorite(db, owner_id=owner_id, target_id=target_id, kind=kind.value, now=now, cap=cap):
                    raise ValidationError("compare_full", f"You can compare at most {self.compare_max} profiles")
            else:
                repo.delete_favorite(db, owner_id=owner_id, target_id=target_id, kind=kind.value)
            if kind == FavoriteKind.SHORTLIST:
                self.compatibility.restore_visibility(db, owner_id, target_id)
            db.commit()
        return wanted, True

    def list(self, owner_id: str, kind: str | FavoriteKind) -> list[dict[str, Any]]:
        kind = parse_kind(kind)
        with self._session_factory() as db:
            rows = repo.list_favorites(db, owner_id, kind.value, insertion_order=kind == FavoriteKind.COMPARE)
        return [
            {"target_id": str(r["target_id"]), "kind": r["kind"], "created_at": as_utc(r["created_at"]).isoformat()}
            for r in rows
        ]

    def contains(self, owner_id: str, target_id: str, kind: str | FavoriteKind) -> bool:
        kind = parse_kind(kind)
        with self._session_factory() as db:
            return repo.favorite_exists(db, owner_id, target_id, kind.value)
