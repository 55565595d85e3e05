"""Per-pair compatibility and visibility, persisted per (viewer, candidate).

Scores are cached in process; visibility is always read from the stored record.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from .. import repo
from ..config import COMPAT_CACHE_SIZE, COMPAT_CACHE_TTL_SECONDS, DEFAULT_SCORING_WEIGHTS, MATCH_MIN_SCORE
from .compat_cache import CompatibilityCache, ScoreEntry
from .directory import ProfileDirectory
from .domain import Compatibility, FavoriteKind, HiddenReason, MemberSnapshot
from .scoring import compute_score
from .state_machine import active_pair_key

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CompatibilityEngine:
    def __init__(
        self,
        directory: ProfileDirectory,
        *,
        cache: CompatibilityCache | None = None,
        weights: dict[str, float] | None = None,
        min_score: int = MATCH_MIN_SCORE,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.directory = directory
        self.cache = cache if cache is not None else CompatibilityCache(COMPAT_CACHE_SIZE, COMPAT_CACHE_TTL_SECONDS)
        self.weights = dict(weights or DEFAULT_SCORING_WEIGHTS)
        self.min_score = min_score
        self._clock = clock

    def get_or_compute(self, db, viewer_id: str, candidate_id: str, *, use_cache: bool = True) -> Compatibility:
        viewer, candidate = self.directory.get_pair(db, viewer_id, candidate_id)
        return self._get_or_compute_for(db, viewer, candidate, use_cache=use_cache)

    def _get_or_compute_for(
        self,
        db,
        viewer: MemberSnapshot,
        candidate: MemberSnapshot,
        *,
        use_cache: bool = True,
    ) -> Compatibility:
        key = (viewer.id, candidate.id)
        fresh_after = max(viewer.profile_updated_at, candidate.profile_updated_at)

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None and cached.computed_at >= fresh_after:
                state = repo.get_compatibility_visibility(db, viewer.id, candidate.id)
                if state is not None:
                    hidden = state["hidden_reason"]
                    return Compatibility(
                        viewer_id=viewer.id,
                        candidate_id=candidate.id,
                        score=cached.score,
                        reasons=list(cached.reasons),
                        visible=bool(state["visible"]),
                        hidden_reason=HiddenReason(hidden) if hidden else None,
                        computed_at=cached.computed_at,
                    )

        row = repo.get_compatibility(db, viewer.id, candidate.id)
        if row:
            record = Compatibility.from_row(row)
            if record.computed_at >= fresh_after:
                self._remember(record)
                return record
            logger.debug("[compat] stale record viewer=%s candidate=%s computed_at=%s", viewer.id, candidate.id, record.computed_at)

        score, reasons = compute_score(viewer.expectations, candidate.attributes, self.weights)
        computed_at = max(self._clock(), fresh_after)
        row = repo.upsert_compatibility_score(
            db,
            viewer_id=viewer.id,
            candidate_id=candidate.id,
            score=score,
            reasons=reasons,
            computed_at=computed_at,
        )
        record = Compatibility.from_row(row)
        self._remember(record)
        return record

    def _remember(self, record: Compatibility) -> None:
        entry = ScoreEntry(score=record.score, reasons=tuple(record.reasons), computed_at=record.computed_at)
        self.cache.set((record.viewer_id, record.candidate_id), entry)

    def set_visibility(
        self,
        db,
        viewer_id: str,
        candidate_id: str,
        *,
        visible: bool,
        hidden_reason: HiddenReason | None,
    ) -> None:
        reason = None if visible else (hidden_reason.value if hidden_reason else None)
        updated = repo.set_compatibility_visibility(
            db, viewer_id=viewer_id, candidate_id=candidate_id, visible=visible, hidden_reason=reason
        )
        if not updated:
            self.get_or_compute(db, viewer_id, candidate_id, use_cache=False)
            repo.set_compatibility_visibility(
                db, viewer_id=viewer_id, candidate_id=candidate_id, visible=visible, hidden_reason=reason
            )
        logger.debug("[compat] visibility viewer=%s candidate=%s visible=%s reason=%s", viewer_id, candidate_id, visible, reason)

    def hide(self, db, viewer_id: str, candidate_id: str, reason: HiddenReason) -> None:
        self.set_visibility(db, viewer_id, candidate_id, visible=False, hidden_reason=reason)

    def hide_pair(self, db, member_a: str, member_b: str, reason: HiddenReason) -> None:
        self.hide(db, member_a, member_b, reason)
        self.hide(db, member_b, member_a, reason)

    def restore_visibility(self, db, viewer_id: str, candidate_id: str) -> HiddenReason | None:
        """Recompute the hide state of (viewer -> candidate) from the facts that justify hiding."""
        if repo.find_active_request_for_pair(db, active_pair_key(viewer_id, candidate_id)):
            reason: HiddenReason | None = HiddenReason.BY_REQUEST
        elif repo.favorite_exists(db, viewer_id, candidate_id, FavoriteKind.SHORTLIST.value):
            reason = HiddenReason.BY_FAVORITE
        else:
            reason = None
        self.set_visibility(db, viewer_id, candidate_id, visible=reason is None, hidden_reason=reason)
        return reason

    def restore_pair(self, db, member_a: str, member_b: str) -> None:
        self.restore_visibility(db, member_a, member_b)
        self.restore_visibility(db, member_b, member_a)

    def is_discoverable(self, db, viewer_id: str, candidate_id: str) -> bool:
        viewer, candidate = self.directory.get_pair(db, viewer_id, candidate_id)
        if not self.directory.is_eligible(viewer, candidate):
            return False
        record = self._get_or_compute_for(db, viewer, candidate, use_cache=False)
        return record.visible or record.hidden_reason == HiddenReason.BY_FAVORITE

    def ranked_matches(self, db, viewer_id: str, *, cursor: int = 0, limit: int = 20) -> tuple[list[dict[str, Any]], int | None]:
        viewer = self.directory.get_member(db, viewer_id)
        ranked: list[tuple[Compatibility, MemberSnapshot]] = []
        for candidate in self.directory.list_candidates(db, viewer_id):
            record = self._get_or_compute_for(db, viewer, candidate)
            if not record.visible or record.score < self.min_score:
                continue
            ranked.append((record, candidate))
        ranked.sort(key=lambda item: (-item[0].score, item[1].id))

        start = max(0, int(cursor))
        page = ranked[start : start + limit]
        next_cursor = start + limit if start + limit < len(ranked) else None
        items = [
            {
                "candidate_id": candidate.id,
                "display_name": candidate.display_name,
                "score": record.score,
                "reasons": list(record.reasons),
                "computed_at": record.computed_at.isoformat(),
            }
            for record, candidate in page
        ]
        return items, next_cursor
