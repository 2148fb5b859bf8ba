import uuid
from typing import Optional

from fastapi import Depends, HTTPException, Query, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.core.config import settings
from app.core.db import get_db
from app.core import security
from app.core.errors import Unauthorized
from app.core.permissions import AllowListPolicy, AuthorizationPolicy
from app.modules.auth.models import User
from app.modules.auth.schemas import TokenData
from app.modules.moderation.enforcement import EnforcementDispatcher

# auto_error=False so the token can also come from the query string
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)

async def _resolve_user(db: AsyncSession, token: Optional[str]) -> Optional[User]:
    if not token:
        return None

    try:
        payload = security.decode_access_token(token)
        user_id: Optional[str] = payload.get("sub")
        if user_id is None:
            return None
        token_data = TokenData(id=user_id)
        user_uuid = uuid.UUID(token_data.id)
    except (JWTError, ValueError):
        return None

    result = await db.execute(select(User).where(User.id == user_uuid))
    return result.scalars().first()

async def get_current_user(
    token_query: Optional[str] = Query(None, alias="token"),
    token_header: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    user = await _resolve_user(db, token_query or token_header)
    if user is None:
        raise Unauthorized("Could not validate credentials")
    return user

async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user

def get_authorization_policy(request: Request) -> AuthorizationPolicy:
    policy = getattr(request.app.state, "authorization_policy", None)
    if policy is None:
        # App started without a configured policy (e.g. a bare test app)
        policy = AllowListPolicy.from_settings(settings)
        request.app.state.authorization_policy = policy
    return policy

def get_enforcement_dispatcher(request: Request) -> EnforcementDispatcher:
    dispatcher = getattr(request.app.state, "enforcement_dispatcher", None)
    if dispatcher is None:
        dispatcher = EnforcementDispatcher()
        request.app.state.enforcement_dispatcher = dispatcher
    return dispatcher

def get_client_info(request: Request) -> dict:
    """Request metadata recorded on moderation log entries."""
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }
