from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Index, Integer, String, Text, UniqueConstraint, func

from .database import Base


class Member(Base):
    __tablename__ = "member"

    id = Column(String(64), primary_key=True)
    display_name = Column(String(200), nullable=True)
    visible = Column(Boolean, nullable=False, default=True)
    approved = Column(Boolean, nullable=False, default=False)
    attributes = Column(JSON, nullable=False, default=dict)
    expectations = Column(JSON, nullable=False, default=dict)
    profile_updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class MemberBlock(Base):
    __tablename__ = "member_block"

    id = Column(String(36), primary_key=True)
    member_id = Column(String(64), nullable=False)
    blocked_member_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("member_id", "blocked_member_id", name="uq_member_block_pair"),
        Index("idx_member_block_blocked", "blocked_member_id"),
    )


class CompatibilityRecord(Base):
    __tablename__ = "compatibility_record"

    viewer_id = Column(String(64), primary_key=True)
    candidate_id = Column(String(64), primary_key=True)
    score = Column(Integer, nullable=False)
    reasons = Column(JSON, nullable=False, default=list)
    visible = Column(Boolean, nullable=False, default=True)
    hidden_reason = Column(String(32), nullable=True)
    computed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_compat_viewer_visible_score", "viewer_id", "visible", "score"),
        Index("idx_compat_candidate", "candidate_id"),
    )


class ConnectionRequest(Base):
    __tablename__ = "connection_request"

    id = Column(String(36), primary_key=True)
    requester_id = Column(String(64), nullable=False)
    target_id = Column(String(64), nullable=False)
    status = Column(String(16), nullable=False)
    # "<len(low)>:<low>:<high>" while the request is active, NULL once withdrawn/cancelled.
    active_pair_key = Column(String(140), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("uq_connection_request_active_pair", "active_pair_key", unique=True),
        Index("idx_connection_request_requester", "requester_id", "created_at"),
        Index("idx_connection_request_target", "target_id", "created_at"),
    )


class FavoriteEdge(Base):
    __tablename__ = "favorite_edge"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(64), nullable=False)
    target_id = Column(String(64), nullable=False)
    kind = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    # Insertion sequence within (owner_id, kind); compare lists are read in this order.
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("owner_id", "target_id", "kind", name="uq_favorite_edge"),
        UniqueConstraint("owner_id", "kind", "position", name="uq_favorite_edge_position"),
        Index("idx_favorite_edge_owner_kind", "owner_id", "kind"),
    )


class ProfileView(Base):
    __tablename__ = "profile_view"

    id = Column(String(36), primary_key=True)
    viewer_id = Column(String(64), nullable=False)
    candidate_id = Column(String(64), nullable=False)
    viewed_at = Column(DateTime(timezone=True), nullable=False)
    week_start_date = Column(Date, nullable=False)
    week_number = Column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_profile_view_viewer_candidate", "viewer_id", "candidate_id", "viewed_at"),
        Index("idx_profile_view_candidate_week", "candidate_id", "week_start_date"),
        Index("idx_profile_view_viewed_at", "viewed_at"),
    )


class Notification(Base):
    __tablename__ = "notification"

    id = Column(String(36), primary_key=True)
    recipient_id = Column(String(64), nullable=False)
    type = Column(String(32), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    meta = Column(JSON, nullable=False, default=dict)
    idempotency_key = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_notification_idempotency_key"),
        Index("idx_notification_recipient_read", "recipient_id", "is_read", "created_at"),
    )
