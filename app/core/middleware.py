import json
import logging
import re
from typing import Iterable, List, Optional, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.core.config import settings
from app.modules.moderation.ingress import SCAN_JOB
from app.modules.moderation.models import ContentType

logger = logging.getLogger(__name__)

# (methods, path regex, content type). A named "id" group is the content id;
# without one the id is read from the JSON response.
ScanRoute = Tuple[Tuple[str, ...], str, ContentType]

def default_scan_routes(prefix: str = settings.API_V1_STR) -> List[ScanRoute]:
    return [
        (("PUT", "PATCH"), rf"^{prefix}/profiles/(?P<id>[^/]+)/?$", ContentType.PROFILE),
        (("POST",), rf"^{prefix}/posts/?$", ContentType.POST),
        (("POST",), rf"^{prefix}/posts/[^/]+/comments/?$", ContentType.COMMENT),
        (("POST",), rf"^{prefix}/events/[^/]+/comments/?$", ContentType.COMMENT),
    ]

class ContentScanMiddleware(BaseHTTPMiddleware):
    """
    Queues a moderation scan for requests that create or edit user content.

    The response never waits on the scan and nothing that goes wrong here
    reaches the client: errors are logged and the original response is returned.
    """

    def __init__(self, app, worker=None, routes: Optional[Iterable[ScanRoute]] = None, enabled: bool = True):
        super().__init__(app)
        if worker is None:
            from app.modules.worker.runner import worker
        self.worker = worker
        self.enabled = enabled
        self.routes = [
            (tuple(m.upper() for m in methods), re.compile(pattern), content_type)
            for methods, pattern, content_type in (routes if routes is not None else default_scan_routes())
        ]

    def _match(self, request: Request):
        for methods, pattern, content_type in self.routes:
            if request.method in methods:
                match = pattern.match(request.url.path)
                if match:
                    return content_type, match
        return None

    async def dispatch(self, request: Request, call_next):
        matched = self._match(request) if self.enabled else None
        if matched is None:
            return await call_next(request)

        payload = None
        try:
            # Starlette caches the body so the endpoint can still read it
            body = await request.body()
            payload = json.loads(body) if body else None
        except Exception as e:
            logger.warning(f"[ContentScan] Unreadable body on {request.method} {request.url.path}: {e}")

        response = await call_next(request)

        if not isinstance(payload, dict) or response.status_code >= 300:
            return response

        content_type, match = matched
        content_id = match.groupdict().get("id")
        if content_id is None:
            try:
                response, content_id = await self._read_created_id(response)
            except Exception as e:
                logger.error(f"[ContentScan] Could not read response of {request.method} {request.url.path}: {e}", exc_info=True)
                return response

        if not content_id:
            logger.warning(f"[ContentScan] No content id for {request.method} {request.url.path}, skipping scan")
            return response

        try:
            await self.worker.enqueue_job(
                SCAN_JOB,
                content_type=content_type.value,
                content_id=str(content_id),
                payload=dict(payload)
            )
        except Exception as e:
            logger.error(f"[ContentScan] Failed to queue scan for {content_type.value}:{content_id}: {e}", exc_info=True)

        return response

    async def _read_created_id(self, response):
        """Buffer the response body to pick out the created record's id."""
        if "application/json" not in response.headers.get("content-type", ""):
            return response, None

        body = b"".join([chunk async for chunk in response.body_iterator])
        rebuilt = Response(
            content=body,
            status_code=response.status_code,
            headers=response.headers,
            media_type=response.media_type,
            background=getattr(response, "background", None),
        )

        try:
            data = json.loads(body)
        except ValueError:
            return rebuilt, None

        if isinstance(data, dict):
            if data.get("id"):
                return rebuilt, data["id"]
            nested = data.get("data")
            if isinstance(nested, dict) and nested.get("id"):
                return rebuilt, nested["id"]
        return rebuilt, None
