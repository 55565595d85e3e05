"""Domain types shared by the engine services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional


class ConnectionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    CANCELLED = "cancelled"


class FavoriteKind(str, Enum):
    SHORTLIST = "shortlist"
    COMPARE = "compare"


class HiddenReason(str, Enum):
    BY_REQUEST = "by_request"
    BY_FAVORITE = "by_favorite"


class NotificationType(str, Enum):
    REQUEST_SENT = "request_sent"
    REQUEST_RECEIVED = "request_received"
    REQUEST_ACCEPTED = "request_accepted"
    REQUEST_REJECTED = "request_rejected"
    REQUEST_CANCELLED = "request_cancelled"
    LIKE = "like"
    PROFILE_VIEW = "profile_view"
    SYSTEM = "system"


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class MemberSnapshot:
    id: str
    display_name: Optional[str]
    visible: bool
    approved: bool
    attributes: dict[str, Any]
    expectations: dict[str, Any]
    profile_updated_at: datetime
    blocked: set[str] = field(default_factory=set)

    @classmethod
    def from_row(cls, row: Any, blocked: set[str] | None = None) -> "MemberSnapshot":
        return cls(
            id=str(row["id"]),
            display_name=row.get("display_name"),
            visible=bool(row["visible"]),
            approved=bool(row["approved"]),
            attributes=dict(row.get("attributes") or {}),
            expectations=dict(row.get("expectations") or {}),
            profile_updated_at=as_utc(row["profile_updated_at"]),
            blocked=set(blocked or set()),
        )


@dataclass
class Compatibility:
    viewer_id: str
    candidate_id: str
    score: int
    reasons: list[str]
    visible: bool
    hidden_reason: Optional[HiddenReason]
    computed_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Compatibility":
        hidden = row.get("hidden_reason")
        return cls(
            viewer_id=str(row["viewer_id"]),
            candidate_id=str(row["candidate_id"]),
            score=int(row["score"]),
            reasons=list(row.get("reasons") or []),
            visible=bool(row["visible"]),
            hidden_reason=HiddenReason(hidden) if hidden else None,
            computed_at=as_utc(row["computed_at"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "viewer_id": self.viewer_id,
            "candidate_id": self.candidate_id,
            "score": self.score,
            "reasons": list(self.reasons),
            "visible": self.visible,
            "hidden_reason": self.hidden_reason.value if self.hidden_reason else None,
            "computed_at": self.computed_at.isoformat(),
        }


@dataclass
class Connection:
    id: str
    requester_id: str
    target_id: str
    status: ConnectionStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Connection":
        return cls(
            id=str(row["id"]),
            requester_id=str(row["requester_id"]),
            target_id=str(row["target_id"]),
            status=ConnectionStatus(row["status"]),
            created_at=as_utc(row["created_at"]),
            updated_at=as_utc(row["updated_at"]),
        )

    def counterpart_of(self, member_id: str) -> str:
        return self.target_id if member_id == self.requester_id else self.requester_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "target_id": self.target_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class ViewRecord:
    id: str
    viewer_id: str
    candidate_id: str
    viewed_at: datetime
    week_start_date: date
    week_number: int

    @classmethod
    def from_row(cls, row: Any) -> "ViewRecord":
        return cls(
            id=str(row["id"]),
            viewer_id=str(row["viewer_id"]),
            candidate_id=str(row["candidate_id"]),
            viewed_at=as_utc(row["viewed_at"]),
            week_start_date=row["week_start_date"],
            week_number=int(row["week_number"]),
        )


@dataclass
class NotificationEvent:
    """A state change the dispatcher turns into one notification per recipient."""

    id: str
    type: NotificationType
    recipients: list[str]
    actor_id: Optional[str] = None
    subject_id: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=dict)
