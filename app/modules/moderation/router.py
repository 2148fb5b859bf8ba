import logging
from datetime import datetime, timezone
from typing import Annotated, Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core import deps
from app.core.errors import PersistenceError, ValidationError
from app.core.permissions import AuthorizationPolicy
from app.modules.auth import models as auth_models
from app.modules.moderation.enforcement import EnforcementDispatcher
from app.modules.moderation import classifiers, flags, models, scanner, schemas, service

logger = logging.getLogger(__name__)

router = APIRouter()

def _parse_filter(enum_cls, value: Optional[str]):
    """``None`` or ``"all"`` means no filter."""
    if value is None or value == "all":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid filter value: {value}")

# Scanning

@router.get("/scan")
async def scan_health() -> Any:
    return {
        "success": True,
        "message": "Content moderation scanning service is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

@router.post("/scan", response_model=schemas.ScanResponse)
async def scan_content(
    scan_in: Annotated[schemas.ScanRequest, Body(discriminator="content_type")],
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Scan a piece of content on demand. When it is flagged and a content id is
    given, the flag is stored too; storage problems never fail the scan.
    """
    if isinstance(scan_in, schemas.TextScanRequest):
        result = scanner.scan(scan_in.content)
    else:
        result = classifiers.classify(scan_in.content)

    content_type = classifiers.SCAN_CONTENT_TYPES.get(scan_in.content_type)
    if result.flagged and scan_in.content_id and content_type is not None:
        try:
            await flags.submit_flag(
                db,
                content_type,
                scan_in.content_id,
                result.flag_type,
                result.confidence_score,
                result.details
            )
        except PersistenceError as e:
            logger.error(f"[Scan] Flag for {content_type.value}:{scan_in.content_id} not stored: {e.detail}")

    return schemas.ScanResponse(**result.model_dump())

# Auto flags

@router.post("/flags", response_model=schemas.AutoFlagRead)
async def submit_auto_flag(
    flag_in: schemas.AutoFlagCreate,
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Used by scanning services outside this process.
    """
    return await flags.submit_flag(
        db,
        flag_in.content_type,
        flag_in.content_id,
        flag_in.flag_type,
        flag_in.confidence_score,
        flag_in.details
    )

@router.get("/flags", response_model=List[schemas.AutoFlagRead])
async def list_auto_flags(
    status: str = "pending",
    flag_type: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    policy: AuthorizationPolicy = Depends(deps.get_authorization_policy),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.list_auto_flags(
        db,
        current_user,
        policy,
        status=_parse_filter(models.FlagStatus, status),
        flag_type=_parse_filter(models.FlagType, flag_type),
        limit=limit,
        offset=offset
    )

@router.put("/flags/{flag_id}", response_model=schemas.AutoFlagRead)
async def update_auto_flag(
    flag_id: UUID,
    update_in: schemas.AutoFlagStatusUpdate,
    request: Request,
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    policy: AuthorizationPolicy = Depends(deps.get_authorization_policy),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.update_auto_flag_status(
        db,
        current_user,
        policy,
        flag_id,
        update_in.status,
        notes=update_in.notes,
        **deps.get_client_info(request)
    )

@router.post("/flags/{flag_id}/promote", response_model=schemas.ReportRead)
async def promote_auto_flag(
    flag_id: UUID,
    request: Request,
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    policy: AuthorizationPolicy = Depends(deps.get_authorization_policy),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.promote_auto_flag(
        db, current_user, policy, flag_id, **deps.get_client_info(request)
    )

# Reports

@router.post("/reports", response_model=schemas.ReportRead)
async def submit_report(
    report_in: schemas.ReportCreate,
    request: Request,
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.create_report(db, current_user, report_in, **deps.get_client_info(request))

@router.get("/reports", response_model=List[schemas.ReportRead])
async def list_reports(
    status: str = "pending",
    report_type: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    policy: AuthorizationPolicy = Depends(deps.get_authorization_policy),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.list_reports(
        db,
        current_user,
        policy,
        status=_parse_filter(models.ReportStatus, status),
        report_type=_parse_filter(models.ReportType, report_type),
        limit=limit,
        offset=offset
    )

@router.put("/reports/{report_id}", response_model=schemas.ReportRead)
async def update_report(
    report_id: UUID,
    update_in: schemas.ReportStatusUpdate,
    request: Request,
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    policy: AuthorizationPolicy = Depends(deps.get_authorization_policy),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.update_report_status(
        db,
        current_user,
        policy,
        report_id,
        update_in.status,
        notes=update_in.notes,
        **deps.get_client_info(request)
    )

# Enforcement actions

@router.post("/actions", response_model=schemas.EnforcementActionRead)
async def create_enforcement_action(
    action_in: schemas.EnforcementActionCreate,
    request: Request,
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    policy: AuthorizationPolicy = Depends(deps.get_authorization_policy),
    dispatcher: EnforcementDispatcher = Depends(deps.get_enforcement_dispatcher),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.create_enforcement_action(
        db, current_user, policy, action_in, dispatcher=dispatcher, **deps.get_client_info(request)
    )

@router.get("/actions", response_model=List[schemas.EnforcementActionRead])
async def list_enforcement_actions(
    action_type: Optional[str] = None,
    target_type: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    policy: AuthorizationPolicy = Depends(deps.get_authorization_policy),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.list_enforcement_actions(
        db,
        current_user,
        policy,
        action_type=_parse_filter(models.ActionType, action_type),
        target_type=_parse_filter(models.TargetType, target_type),
        limit=limit,
        offset=offset
    )

# Appeals

@router.post("/appeals", response_model=schemas.AppealRead)
async def create_appeal(
    appeal_in: schemas.AppealCreate,
    request: Request,
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.create_appeal(db, current_user, appeal_in, **deps.get_client_info(request))

@router.get("/appeals", response_model=List[schemas.AppealRead])
async def list_appeals(
    status: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    policy: AuthorizationPolicy = Depends(deps.get_authorization_policy),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Admins see every appeal, everyone else only their own.
    """
    return await service.list_appeals(
        db,
        current_user,
        policy,
        status=_parse_filter(models.AppealStatus, status),
        limit=limit,
        offset=offset
    )

@router.put("/appeals/{appeal_id}", response_model=schemas.AppealRead)
async def update_appeal(
    appeal_id: UUID,
    update_in: schemas.AppealStatusUpdate,
    request: Request,
    current_user: auth_models.User = Depends(deps.get_current_active_user),
    policy: AuthorizationPolicy = Depends(deps.get_authorization_policy),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.update_appeal_status(
        db,
        current_user,
        policy,
        appeal_id,
        update_in.status,
        notes=update_in.notes,
        **deps.get_client_info(request)
    )
