"""
Background half of request-triggered scanning.

``ContentScanMiddleware`` clones the body of a content-mutating request and
enqueues a ``scan_content`` job; the worker runs ``process_scan_job`` outside
the request/response cycle.
"""
import logging
from functools import partial
from typing import Any, Dict, Optional

from app.modules.moderation import classifiers, flags, models
from app.modules.moderation.scanner import ContentScanner

logger = logging.getLogger(__name__)

SCAN_JOB = "scan_content"

async def process_scan_job(
    session_factory,
    content_type: str,
    content_id: str,
    payload: Dict[str, Any],
    scanner: Optional[ContentScanner] = None
) -> Optional[models.AutoFlag]:
    content_type = models.ContentType(content_type)

    if content_type == models.ContentType.PROFILE:
        # Partial profile updates may omit the username or send it as null
        payload = {**payload, "username": payload.get("username") or ""}

    content = classifiers.parse_content(content_type, payload)
    result = classifiers.classify(content, scanner)
    if not result.flagged:
        logger.debug(f"[Ingress] {content_type.value}:{content_id} clean")
        return None

    async with session_factory() as db:
        return await flags.submit_flag(
            db,
            content_type,
            content_id,
            result.flag_type,
            result.confidence_score,
            result.details
        )

def register(worker, scanner: Optional[ContentScanner] = None) -> None:
    worker.register(SCAN_JOB, partial(process_scan_job, scanner=scanner))
