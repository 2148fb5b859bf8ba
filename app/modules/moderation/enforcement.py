"""
Dispatch point for enforcement side effects.

The moderation service only records intent. Whatever actually hides a post or
suspends an account lives in the owning system and is plugged into an
``EnforcementDispatcher`` built at startup and kept on ``app.state``. Action
types with no registered handler just log.
"""
import logging
from typing import Awaitable, Callable, Dict, Optional

from app.modules.moderation import models

logger = logging.getLogger(__name__)

EnforcementHandler = Callable[[models.EnforcementAction], Awaitable[None]]

async def _log_intent(action: models.EnforcementAction) -> None:
    logger.info(
        f"[Enforcement] {action.action_type.value} recorded for "
        f"{action.target_type.value}:{action.target_id} (no executor registered)"
    )

class EnforcementDispatcher:
    def __init__(self, handlers: Optional[Dict[models.ActionType, EnforcementHandler]] = None):
        self._handlers: Dict[models.ActionType, EnforcementHandler] = {}
        for action_type, handler in (handlers or {}).items():
            self.register(action_type, handler)

    def register(self, action_type: models.ActionType, handler: EnforcementHandler) -> None:
        self._handlers[models.ActionType(action_type)] = handler

    async def dispatch(self, action: models.EnforcementAction) -> None:
        handler = self._handlers.get(action.action_type, _log_intent)
        try:
            await handler(action)
        except Exception as e:
            # The action record stands; a moderator reconciles the missing effect
            logger.error(f"[Enforcement] Handler for {action.action_type.value} failed on action {action.id}: {e}", exc_info=True)
