import uuid
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from .database import Base


class UserProfile(Base):
    __tablename__ = "user_profile"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    display_name = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    age = Column(Integer, nullable=True)
    birth_date = Column(Date, nullable=True)
    looking_for = Column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    subscription_status = Column(String, nullable=False, default="free")
    zodiac_sign = Column(String, nullable=True)
    activity_preference = Column(String, nullable=True)
    onboarding_completed = Column(Boolean, nullable=False, default=False)
    natal_chart = Column(JSONB, nullable=True)
    questionnaire_responses = Column(JSONB, nullable=True)
    daily_invites_remaining = Column(Integer, nullable=False, default=5)
    last_invite_reset_date = Column(Date, nullable=True)
    last_active_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("subscription_status IN ('free', 'premium', 'premium_cancelled')", name="ck_user_profile_tier"),
        CheckConstraint("daily_invites_remaining >= 0", name="ck_user_profile_invites_non_negative"),
    )


class Swipe(Base):
    __tablename__ = "swipe"

    swiper_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    swiped_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    swipe_type = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        PrimaryKeyConstraint("swiper_id", "swiped_id", name="uq_swipe_pair"),
        CheckConstraint("swipe_type IN ('like', 'pass')", name="ck_swipe_type"),
    )


class UserBlock(Base):
    __tablename__ = "user_block"

    blocking_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    blocked_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        PrimaryKeyConstraint("blocking_id", "blocked_id", name="uq_user_block_pair"),
        Index("idx_user_block_blocked", "blocked_id"),
    )


class Conversation(Base):
    __tablename__ = "conversation"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    participant1_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    participant2_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    match_id = Column(UUID(as_uuid=True), nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    last_message_preview = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(UUID(as_uuid=True), nullable=True)
    deletion_reason = Column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("participant1_id", "participant2_id", name="uq_conversation_pair"),
        CheckConstraint("participant1_id < participant2_id", name="ck_conversation_canonical"),
    )


class Match(Base):
    __tablename__ = "match"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user1_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    user2_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="active")
    compatibility_score = Column(Float, nullable=True)
    compatibility_grade = Column(String, nullable=True)
    conversation_id = Column(UUID(as_uuid=True), ForeignKey("conversation.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(UUID(as_uuid=True), nullable=True)
    deletion_reason = Column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_match_pair"),
        CheckConstraint("user1_id < user2_id", name="ck_match_canonical"),
        CheckConstraint("status IN ('active', 'inactive')", name="ck_match_status"),
        Index("idx_match_user2", "user2_id"),
    )


class MatchRequest(Base):
    __tablename__ = "match_request"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    requester_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    matched_user_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="pending")
    compatibility_score = Column(Float, nullable=True)
    compatibility_details = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    responded_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    resulting_match_id = Column(UUID(as_uuid=True), ForeignKey("match.id"), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'rejected', 'expired', 'fulfilled')",
            name="ck_match_request_status",
        ),
        Index(
            "uq_match_request_active_pair",
            "requester_id",
            "matched_user_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
        ),
        Index("idx_match_request_target", "matched_user_id", "status"),
    )


class CompatibilityScoreCache(Base):
    __tablename__ = "compatibility_score_cache"

    user1_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    user2_id = Column(UUID(as_uuid=True), ForeignKey("user_profile.id", ondelete="CASCADE"), nullable=False)
    score = Column(Float, nullable=False)
    grade = Column(String, nullable=False)
    astro_score = Column(Float, nullable=True)
    questionnaire_score = Column(Float, nullable=True)
    details = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    computed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("user1_id", "user2_id"),
        CheckConstraint("user1_id < user2_id", name="ck_compat_cache_canonical"),
    )


class DeletionAudit(Base):
    __tablename__ = "deletion_audit"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entity_type = Column(String, nullable=False)
    entity_id = Column(UUID(as_uuid=True), nullable=False)
    deleted_by = Column(UUID(as_uuid=True), nullable=True)
    deletion_reason = Column(String, nullable=False)
    deletion_metadata = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class NotificationOutbox(Base):
    __tablename__ = "notification_outbox"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False)
    event_type = Column(String, nullable=False)
    payload = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    sent_at = Column(DateTime(timezone=True), nullable=True)


class ProgressLedger(Base):
    __tablename__ = "progress_ledger"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    points = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)
    reference_id = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
