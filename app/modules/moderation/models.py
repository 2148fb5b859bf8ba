import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Enum, ForeignKey, Text, DateTime, Integer, Numeric, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from app.core.db import Base

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class ContentType(str, enum.Enum):
    PROFILE = "profile"
    POST = "post"
    COMMENT = "comment"
    MEDIA = "media"

class FlagType(str, enum.Enum):
    TOXICITY = "toxicity"
    HATE_SPEECH = "hate_speech"
    SPAM = "spam"
    NUDITY = "nudity"
    COPYRIGHT = "copyright"

class FlagStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    DISMISSED = "dismissed"

class ReportType(str, enum.Enum):
    USER = "user"
    CONTENT = "content"
    TECHNICAL = "technical"

class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"
    APPEALED = "appealed"

class ActionType(str, enum.Enum):
    WARN = "warn"
    SUSPEND = "suspend"
    BAN = "ban"
    DELETE_CONTENT = "delete_content"
    HIDE_CONTENT = "hide_content"
    RESET_PASSWORD = "reset_password"

class TargetType(str, enum.Enum):
    USER = "user"
    CONTENT = "content"
    COMMENT = "comment"

class AppealStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    REJECTED = "rejected"

JSONType = JSON().with_variant(JSONB(), "postgresql")

class AutoFlag(Base):
    __tablename__ = "auto_flags"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    content_type = Column(Enum(ContentType), nullable=False)
    content_id = Column(String, nullable=False, index=True) # Opaque, not a FK

    flag_type = Column(Enum(FlagType), nullable=False)
    confidence_score = Column(Numeric(3, 2, asdecimal=False), nullable=True) # 0.00 - 1.00
    details = Column(JSONType, nullable=True)

    status = Column(Enum(FlagStatus), default=FlagStatus.PENDING, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

class Report(Base):
    __tablename__ = "reports"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reporter_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False)
    report_type = Column(Enum(ReportType), nullable=False)
    target_id = Column(String, nullable=True)

    reason = Column(String, nullable=False)
    description = Column(Text, nullable=False)

    status = Column(Enum(ReportStatus), default=ReportStatus.PENDING, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

class EnforcementAction(Base):
    """Append-only: rows are never updated once inserted."""
    __tablename__ = "enforcement_actions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    report_id = Column(Uuid, ForeignKey("reports.id"), nullable=True) # May stand alone
    moderator_id = Column(Uuid, ForeignKey("profiles.id"), nullable=True)

    action_type = Column(Enum(ActionType), nullable=False)
    target_type = Column(Enum(TargetType), nullable=False)
    target_id = Column(String, nullable=False)

    reason = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    duration_seconds = Column(Integer, nullable=True) # Time-boxed suspend/ban

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

class Appeal(Base):
    __tablename__ = "appeals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    report_id = Column(Uuid, ForeignKey("reports.id"), nullable=False)
    user_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)

    reason = Column(String, nullable=False)
    description = Column(Text, nullable=False)

    status = Column(Enum(AppealStatus), default=AppealStatus.PENDING, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

class ModerationLog(Base):
    """Append-only audit trail of moderation state changes."""
    __tablename__ = "moderation_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    moderator_id = Column(Uuid, ForeignKey("profiles.id"), nullable=True) # Null for system actions

    action_type = Column(String, nullable=False) # e.g. "update_report_status", "ban"
    target_type = Column(String, nullable=False) # e.g. "report", "auto_flag", "user"
    target_id = Column(String, nullable=False)

    reason = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
