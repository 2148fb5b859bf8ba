from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional, Union
from app.modules.moderation.models import (
    ActionType,
    AppealStatus,
    ContentType,
    FlagStatus,
    FlagType,
    ReportStatus,
    ReportType,
    TargetType,
)

class ScanResult(BaseModel):
    flagged: bool
    flag_type: Optional[FlagType] = None
    confidence_score: Optional[float] = None
    details: Optional[Dict[str, Any]] = None

# Scannable payloads, one per content type

class ProfileContent(BaseModel):
    username: str
    full_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None

class PostContent(BaseModel):
    content: str
    image_url: Optional[str] = None # Accepted, not scanned
    video_url: Optional[str] = None # Accepted, not scanned

class CommentContent(BaseModel):
    content: str

ModeratedContent = Union[ProfileContent, PostContent, CommentContent]

class TextScanRequest(BaseModel):
    content_type: Literal["text"]
    content_id: Optional[str] = None
    content: str

class ProfileScanRequest(BaseModel):
    content_type: Literal["user_profile"]
    content_id: Optional[str] = None
    content: ProfileContent

class PostScanRequest(BaseModel):
    content_type: Literal["post"]
    content_id: Optional[str] = None
    content: PostContent

class CommentScanRequest(BaseModel):
    content_type: Literal["comment"]
    content_id: Optional[str] = None
    content: CommentContent

# Tagged by content_type; routers parse it with Body(discriminator="content_type")
ScanRequest = Union[TextScanRequest, ProfileScanRequest, PostScanRequest, CommentScanRequest]

class ScanResponse(ScanResult):
    success: bool = True

# Auto flags

class AutoFlagCreate(BaseModel):
    content_type: ContentType
    content_id: str
    flag_type: FlagType
    confidence_score: Optional[float] = Field(None, ge=0, le=1)
    details: Optional[Dict[str, Any]] = None

class AutoFlagStatusUpdate(BaseModel):
    status: FlagStatus
    notes: Optional[str] = None

class AutoFlagRead(BaseModel):
    id: UUID
    content_type: ContentType
    content_id: str
    flag_type: FlagType
    confidence_score: Optional[float]
    details: Optional[Dict[str, Any]]
    status: FlagStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

# Reports

class ReportCreate(BaseModel):
    report_type: ReportType
    target_id: Optional[str] = None
    reason: str
    description: str

class ReportStatusUpdate(BaseModel):
    status: ReportStatus
    notes: Optional[str] = None

class ReportRead(BaseModel):
    id: UUID
    reporter_id: UUID
    report_type: ReportType
    target_id: Optional[str]
    reason: str
    description: str
    status: ReportStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

# Enforcement actions

class EnforcementActionCreate(BaseModel):
    # Required fields are checked by the service so a missing one is a 400
    report_id: Optional[UUID] = None
    action_type: Optional[ActionType] = None
    target_type: Optional[TargetType] = None
    target_id: Optional[str] = None
    reason: Optional[str] = None
    description: Optional[str] = None
    duration_seconds: Optional[int] = Field(None, gt=0)

class EnforcementActionRead(BaseModel):
    id: UUID
    report_id: Optional[UUID]
    moderator_id: Optional[UUID]
    action_type: ActionType
    target_type: TargetType
    target_id: str
    reason: str
    description: Optional[str]
    duration_seconds: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True

# Appeals

class AppealCreate(BaseModel):
    report_id: UUID
    reason: str
    description: str

class AppealStatusUpdate(BaseModel):
    status: AppealStatus
    notes: Optional[str] = None

class AppealRead(BaseModel):
    id: UUID
    report_id: UUID
    user_id: UUID
    reason: str
    description: str
    status: AppealStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
