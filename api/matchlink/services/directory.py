"""Read-only projection of members eligible for discovery."""

from __future__ import annotations

from .. import repo
from .domain import MemberSnapshot
from .errors import NotFound, ValidationError


def guard_not_self(member_id: str, other_id: str) -> None:
    if str(member_id) == str(other_id):
        raise ValidationError("self_reference", "A member cannot target their own profile")


class ProfileDirectory:
    def get_member(self, db, member_id: str) -> MemberSnapshot:
        row = repo.get_member(db, member_id)
        if not row:
            raise NotFound("member_missing", f"Member {member_id} not found")
        return MemberSnapshot.from_row(row, repo.list_block_counterparts(db, member_id))

    def get_pair(self, db, member_a: str, member_b: str) -> tuple[MemberSnapshot, MemberSnapshot]:
        guard_not_self(member_a, member_b)
        return self.get_member(db, member_a), self.get_member(db, member_b)

    def ensure_exists(self, db, *member_ids: str) -> None:
        found = repo.get_members(db, member_ids)
        missing = sorted({str(m) for m in member_ids} - set(found))
        if missing:
            raise NotFound("member_missing", f"Member {missing[0]} not found")

    @staticmethod
    def is_eligible(viewer: MemberSnapshot, candidate: MemberSnapshot) -> bool:
        if viewer.id == candidate.id:
            return False
        if not candidate.approved or not candidate.visible:
            return False
        return candidate.id not in viewer.blocked

    def list_candidates(self, db, viewer_id: str) -> list[MemberSnapshot]:
        viewer = self.get_member(db, viewer_id)
        out: list[MemberSnapshot] = []
        for row in repo.list_discoverable_member_rows(db, viewer_id):
            if str(row["id"]) in viewer.blocked:
                continue
            out.append(MemberSnapshot.from_row(row))
        return out
