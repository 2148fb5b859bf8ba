import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import PersistenceError, ValidationError
from app.modules.moderation import models

logger = logging.getLogger(__name__)

async def submit_flag(
    db: AsyncSession,
    content_type: models.ContentType,
    content_id: str,
    flag_type: models.FlagType,
    confidence_score: Optional[float],
    details: Optional[Dict[str, Any]] = None
) -> models.AutoFlag:
    """
    Persist a new pending auto flag.

    Every call inserts a row, even when the same content was flagged before:
    repeated edits of one post produce one flag each.
    """
    if confidence_score is not None and not 0 <= confidence_score <= 1:
        raise ValidationError("confidence_score must be between 0 and 1")

    flag = models.AutoFlag(
        content_type=models.ContentType(content_type),
        content_id=str(content_id),
        flag_type=models.FlagType(flag_type),
        confidence_score=round(confidence_score, 2) if confidence_score is not None else None,
        details=details,
        status=models.FlagStatus.PENDING
    )
    db.add(flag)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"[FlagStore] Insert failed for {content_type}:{content_id}: {e}")
        raise PersistenceError("Failed to store auto flag", operation="submit_flag") from e

    await db.refresh(flag)
    logger.info(f"[FlagStore] Flagged {flag.content_type.value}:{flag.content_id} as {flag.flag_type.value} ({flag.confidence_score})")
    return flag
