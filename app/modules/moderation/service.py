import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound, PersistenceError, ValidationError
from app.core.permissions import AuthorizationPolicy, require_admin, require_authenticated
from app.modules.auth.models import User
from app.modules.moderation import enforcement, models, schemas

logger = logging.getLogger(__name__)

# Moves allowed through update_report_status. APPEALED is only entered via
# create_appeal and RESOLVED also via create_enforcement_action.
REPORT_TRANSITIONS = {
    models.ReportStatus.PENDING: {
        models.ReportStatus.REVIEWING,
        models.ReportStatus.RESOLVED,
        models.ReportStatus.DISMISSED,
    },
    models.ReportStatus.REVIEWING: {
        models.ReportStatus.RESOLVED,
        models.ReportStatus.DISMISSED,
    },
    models.ReportStatus.APPEALED: {
        models.ReportStatus.REVIEWING,
        models.ReportStatus.RESOLVED,
        models.ReportStatus.DISMISSED,
    },
    models.ReportStatus.RESOLVED: set(),
    models.ReportStatus.DISMISSED: set(),
}

APPEAL_TRANSITIONS = {
    models.AppealStatus.PENDING: {
        models.AppealStatus.REVIEWING,
        models.AppealStatus.APPROVED,
        models.AppealStatus.REJECTED,
    },
    models.AppealStatus.REVIEWING: {
        models.AppealStatus.APPROVED,
        models.AppealStatus.REJECTED,
    },
    models.AppealStatus.APPROVED: set(),
    models.AppealStatus.REJECTED: set(),
}

FLAG_TRANSITIONS = {
    models.FlagStatus.PENDING: {models.FlagStatus.REVIEWED, models.FlagStatus.DISMISSED},
    models.FlagStatus.REVIEWED: set(),
    models.FlagStatus.DISMISSED: set(),
}

def create_moderation_log(
    db: AsyncSession,
    action_type: str,
    target_type: str,
    target_id: str,
    reason: str,
    moderator_id: Optional[UUID] = None,
    description: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> models.ModerationLog:
    # Added to the caller's unit of work so the entry commits with the change it records
    log = models.ModerationLog(
        moderator_id=moderator_id,
        action_type=action_type,
        target_type=target_type,
        target_id=str(target_id),
        reason=reason,
        description=description,
        ip_address=ip_address,
        user_agent=user_agent
    )
    db.add(log)
    return log

async def _commit(db: AsyncSession, operation: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"[Moderation] {operation} failed: {e}")
        raise PersistenceError(f"Failed to {operation.replace('_', ' ')}", operation=operation) from e

# Reports

async def create_report(
    db: AsyncSession,
    actor: Optional[User],
    report_in: schemas.ReportCreate,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> models.Report:
    require_authenticated(actor)
    if not report_in.reason or not report_in.description:
        raise ValidationError("Reason and description are required")

    report = models.Report(
        reporter_id=actor.id,
        report_type=report_in.report_type,
        target_id=report_in.target_id,
        reason=report_in.reason,
        description=report_in.description,
        status=models.ReportStatus.PENDING
    )
    db.add(report)
    await db.flush()

    create_moderation_log(
        db,
        action_type="create_report",
        target_type="report",
        target_id=str(report.id),
        reason=report_in.reason,
        moderator_id=actor.id,
        description=report_in.description,
        ip_address=ip_address,
        user_agent=user_agent
    )
    await _commit(db, "create_report")
    await db.refresh(report)
    return report

async def list_reports(
    db: AsyncSession,
    actor: Optional[User],
    policy: AuthorizationPolicy,
    status: Optional[models.ReportStatus] = models.ReportStatus.PENDING,
    report_type: Optional[models.ReportType] = None,
    limit: int = 20,
    offset: int = 0
):
    require_admin(policy, actor)

    stmt = select(models.Report)
    if status is not None:
        stmt = stmt.where(models.Report.status == status)
    if report_type is not None:
        stmt = stmt.where(models.Report.report_type == report_type)

    stmt = stmt.order_by(models.Report.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()

async def update_report_status(
    db: AsyncSession,
    actor: Optional[User],
    policy: AuthorizationPolicy,
    report_id: UUID,
    status: models.ReportStatus,
    notes: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> models.Report:
    require_admin(policy, actor)
    status = models.ReportStatus(status)

    report = await db.get(models.Report, report_id)
    if not report:
        raise NotFound("Report not found")

    current = report.status
    if status not in REPORT_TRANSITIONS[current]:
        raise ValidationError(f"Cannot move report from {current.value} to {status.value}")

    # Compare-and-set so a concurrent change is not silently overwritten
    result = await db.execute(
        update(models.Report)
        .where(models.Report.id == report_id, models.Report.status == current)
        .values(status=status, updated_at=models.utcnow())
    )
    if result.rowcount == 0:
        await db.rollback()
        raise ValidationError("Report status changed concurrently, reload and retry")

    create_moderation_log(
        db,
        action_type="update_report_status",
        target_type="report",
        target_id=str(report_id),
        reason=f"Status changed to {status.value}",
        moderator_id=actor.id,
        description=notes or f"Report status updated to {status.value}",
        ip_address=ip_address,
        user_agent=user_agent
    )
    await _commit(db, "update_report_status")
    await db.refresh(report)
    return report

# Enforcement actions

async def create_enforcement_action(
    db: AsyncSession,
    actor: Optional[User],
    policy: AuthorizationPolicy,
    action_in: schemas.EnforcementActionCreate,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    dispatcher: Optional[enforcement.EnforcementDispatcher] = None
) -> models.EnforcementAction:
    require_admin(policy, actor)

    missing = [
        field for field in ("action_type", "target_type", "target_id", "reason")
        if not getattr(action_in, field)
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if action_in.report_id is not None:
        report = await db.get(models.Report, action_in.report_id)
        if not report:
            raise NotFound("Report not found")

    action = models.EnforcementAction(
        report_id=action_in.report_id,
        moderator_id=actor.id,
        action_type=action_in.action_type,
        target_type=action_in.target_type,
        target_id=action_in.target_id,
        reason=action_in.reason,
        description=action_in.description,
        duration_seconds=action_in.duration_seconds
    )
    db.add(action)

    create_moderation_log(
        db,
        action_type=action_in.action_type.value,
        target_type=action_in.target_type.value,
        target_id=action_in.target_id,
        reason=action_in.reason,
        moderator_id=actor.id,
        description=action_in.description or f"Enforcement action: {action_in.action_type.value}",
        ip_address=ip_address,
        user_agent=user_agent
    )
    await _commit(db, "create_enforcement_action")
    await db.refresh(action)

    if action.report_id is not None:
        # Separate single-statement update; a failure leaves the action recorded
        # and the report for a moderator to reconcile.
        try:
            await db.execute(
                update(models.Report)
                .where(models.Report.id == action.report_id)
                .values(status=models.ReportStatus.RESOLVED, updated_at=models.utcnow())
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[Moderation] Action {action.id} recorded but report {action.report_id} not resolved: {e}")

    await (dispatcher or enforcement.EnforcementDispatcher()).dispatch(action)
    return action

async def list_enforcement_actions(
    db: AsyncSession,
    actor: Optional[User],
    policy: AuthorizationPolicy,
    action_type: Optional[models.ActionType] = None,
    target_type: Optional[models.TargetType] = None,
    limit: int = 20,
    offset: int = 0
):
    require_admin(policy, actor)

    stmt = select(models.EnforcementAction)
    if action_type is not None:
        stmt = stmt.where(models.EnforcementAction.action_type == action_type)
    if target_type is not None:
        stmt = stmt.where(models.EnforcementAction.target_type == target_type)

    stmt = stmt.order_by(models.EnforcementAction.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()

# Appeals

async def create_appeal(
    db: AsyncSession,
    actor: Optional[User],
    appeal_in: schemas.AppealCreate,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> models.Appeal:
    require_authenticated(actor)
    if not appeal_in.reason or not appeal_in.description:
        raise ValidationError("Reason and description are required")

    report = await db.get(models.Report, appeal_in.report_id)
    if not report:
        raise NotFound("Report not found")

    appeal = models.Appeal(
        report_id=report.id,
        user_id=actor.id,
        reason=appeal_in.reason,
        description=appeal_in.description,
        status=models.AppealStatus.PENDING
    )
    db.add(appeal)

    # Any prior status, including resolved/dismissed, reopens as appealed
    await db.execute(
        update(models.Report)
        .where(models.Report.id == report.id)
        .values(status=models.ReportStatus.APPEALED, updated_at=models.utcnow())
    )

    create_moderation_log(
        db,
        action_type="create_appeal",
        target_type="report",
        target_id=str(report.id),
        reason=appeal_in.reason,
        moderator_id=actor.id,
        description=appeal_in.description,
        ip_address=ip_address,
        user_agent=user_agent
    )
    await _commit(db, "create_appeal")
    await db.refresh(appeal)
    return appeal

async def list_appeals(
    db: AsyncSession,
    actor: Optional[User],
    policy: AuthorizationPolicy,
    status: Optional[models.AppealStatus] = None,
    limit: int = 20,
    offset: int = 0
):
    require_authenticated(actor)

    stmt = select(models.Appeal)
    if not policy.is_admin(actor):
        stmt = stmt.where(models.Appeal.user_id == actor.id)
    if status is not None:
        stmt = stmt.where(models.Appeal.status == status)

    stmt = stmt.order_by(models.Appeal.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()

async def update_appeal_status(
    db: AsyncSession,
    actor: Optional[User],
    policy: AuthorizationPolicy,
    appeal_id: UUID,
    status: models.AppealStatus,
    notes: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> models.Appeal:
    require_admin(policy, actor)
    status = models.AppealStatus(status)

    appeal = await db.get(models.Appeal, appeal_id)
    if not appeal:
        raise NotFound("Appeal not found")

    if status not in APPEAL_TRANSITIONS[appeal.status]:
        raise ValidationError(f"Cannot move appeal from {appeal.status.value} to {status.value}")

    appeal.status = status
    appeal.updated_at = models.utcnow()

    if status == models.AppealStatus.APPROVED:
        # Enforcement is not reversed automatically; the moderator follows up
        # with a new action against the report if needed.
        logger.info(f"[Moderation] Appeal {appeal.id} approved for report {appeal.report_id}")

    create_moderation_log(
        db,
        action_type="update_appeal",
        target_type="appeal",
        target_id=str(appeal.id),
        reason=f"Status changed to {status.value}",
        moderator_id=actor.id,
        description=notes or f"Appeal status updated to {status.value}",
        ip_address=ip_address,
        user_agent=user_agent
    )
    await _commit(db, "update_appeal")
    await db.refresh(appeal)
    return appeal

# Auto flags

async def list_auto_flags(
    db: AsyncSession,
    actor: Optional[User],
    policy: AuthorizationPolicy,
    status: Optional[models.FlagStatus] = models.FlagStatus.PENDING,
    flag_type: Optional[models.FlagType] = None,
    limit: int = 20,
    offset: int = 0
):
    require_admin(policy, actor)

    stmt = select(models.AutoFlag)
    if status is not None:
        stmt = stmt.where(models.AutoFlag.status == status)
    if flag_type is not None:
        stmt = stmt.where(models.AutoFlag.flag_type == flag_type)

    stmt = stmt.order_by(models.AutoFlag.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()

async def update_auto_flag_status(
    db: AsyncSession,
    actor: Optional[User],
    policy: AuthorizationPolicy,
    flag_id: UUID,
    status: models.FlagStatus,
    notes: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> models.AutoFlag:
    require_admin(policy, actor)
    status = models.FlagStatus(status)

    flag = await db.get(models.AutoFlag, flag_id)
    if not flag:
        raise NotFound("Auto flag not found")

    if status not in FLAG_TRANSITIONS[flag.status]:
        raise ValidationError(f"Cannot move auto flag from {flag.status.value} to {status.value}")

    flag.status = status
    flag.updated_at = models.utcnow()

    create_moderation_log(
        db,
        action_type="update_auto_flag",
        target_type="auto_flag",
        target_id=str(flag.id),
        reason=f"Status changed to {status.value}",
        moderator_id=actor.id,
        description=notes or f"Auto flag status updated to {status.value}",
        ip_address=ip_address,
        user_agent=user_agent
    )
    await _commit(db, "update_auto_flag")
    await db.refresh(flag)
    return flag

async def promote_auto_flag(
    db: AsyncSession,
    actor: Optional[User],
    policy: AuthorizationPolicy,
    flag_id: UUID,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> models.Report:
    """
    Open a content report from a pending auto flag and mark the flag reviewed.
    The moderator doing the promotion is recorded as the reporter.
    """
    require_admin(policy, actor)

    flag = await db.get(models.AutoFlag, flag_id)
    if not flag:
        raise NotFound("Auto flag not found")
    if flag.status != models.FlagStatus.PENDING:
        raise ValidationError(f"Auto flag is already {flag.status.value}")

    report = models.Report(
        reporter_id=actor.id,
        report_type=models.ReportType.CONTENT,
        target_id=flag.content_id,
        reason=flag.flag_type.value,
        description=f"Promoted from auto flag {flag.id} ({flag.content_type.value}, score {flag.confidence_score})",
        status=models.ReportStatus.PENDING
    )
    db.add(report)

    flag.status = models.FlagStatus.REVIEWED
    flag.updated_at = models.utcnow()
    await db.flush()

    create_moderation_log(
        db,
        action_type="promote_auto_flag",
        target_type="auto_flag",
        target_id=str(flag.id),
        reason=f"Promoted to report {report.id}",
        moderator_id=actor.id,
        ip_address=ip_address,
        user_agent=user_agent
    )
    await _commit(db, "promote_auto_flag")
    await db.refresh(report)
    return report
