from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class CreateConnectionRequest(BaseModel):
    target_id: str = Field(min_length=1, max_length=64)


class WithdrawRequest(BaseModel):
    hide: bool = False


class ConnectionResponse(BaseModel):
    id: str
    requester_id: str
    target_id: str
    status: Literal["pending", "accepted", "rejected", "withdrawn", "cancelled"]
    created_at: datetime
    updated_at: datetime


class ConnectionListResponse(BaseModel):
    direction: Literal["sent", "received"]
    items: list[ConnectionResponse]


class ConnectionSummary(BaseModel):
    pending_sent: int
    pending_received: int
    accepted: int


class FavoriteToggleResponse(BaseModel):
    target_id: str
    kind: str
    member: bool


class FavoriteItem(BaseModel):
    target_id: str
    kind: str
    created_at: datetime


class MatchItem(BaseModel):
    candidate_id: str
    display_name: Optional[str] = None
    score: int = Field(ge=0, le=100)
    reasons: list[str] = Field(default_factory=list)
    computed_at: datetime


class MatchPage(BaseModel):
    items: list[MatchItem]
    next_cursor: Optional[str] = None


class CompatibilityResponse(BaseModel):
    viewer_id: str
    candidate_id: str
    score: int = Field(ge=0, le=100)
    reasons: list[str]
    visible: bool
    hidden_reason: Optional[Literal["by_request", "by_favorite"]] = None
    computed_at: datetime


class ViewAccepted(BaseModel):
    status: str = "accepted"
    recorded: bool


class ViewItem(BaseModel):
    id: str
    viewer_id: str
    candidate_id: str
    viewed_at: datetime
    week_start_date: str
    week_number: int


class ReceivedViewsResponse(BaseModel):
    items: list[ViewItem]
    weekly: list[dict[str, Any]]


class SentViewsResponse(BaseModel):
    items: list[ViewItem]


class NotificationItem(BaseModel):
    id: str
    recipient_id: str
    type: str
    title: str
    message: str
    is_read: bool
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class NotificationListResponse(BaseModel):
    items: list[NotificationItem]
    unread: int


class PurgeResponse(BaseModel):
    deleted: int
