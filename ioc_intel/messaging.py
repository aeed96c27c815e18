"""Inbound requests: runtime messages and context-menu clicks.

Nothing raised while handling a request crosses this boundary; callers only
ever see a boolean.
"""

from __future__ import annotations

from typing import Any, Optional

from .actions import IOCIntelExecutor
from .logging_utils import get_logger

logger = get_logger()

EXECUTE_IOC_INTEL = "executeIOCIntel"


def parse_request(message: Any) -> Optional[str]:
    """Return the IOC string from ``{"action": "executeIOCIntel", "IOC": ...}``, else None."""
    if not isinstance(message, dict):
        return None
    if message.get("action") != EXECUTE_IOC_INTEL:
        return None
    ioc = message.get("IOC")
    if not isinstance(ioc, str) or not ioc.strip():
        return None
    return ioc


class MessageRouter:
    def __init__(self, executor: IOCIntelExecutor):
        self.executor = executor

    async def handle_message(self, message: Any) -> bool:
        ioc = parse_request(message)
        if ioc is None:
            logger.debug("Ignoring malformed message: %r", message)
            return False
        try:
            return await self.executor.investigate(ioc)
        except Exception:
            logger.exception("Investigation of %r failed", ioc)
            return False

    async def handle_menu_click(self, menu_item_id: str, selection_text: Optional[str]) -> bool:
        """A context-menu item (keyed by IOC type) was clicked on a selection."""
        if not selection_text:
            return False
        state = await self.executor.preferences.get_state()
        if menu_item_id not in state:
            return False
        try:
            return await self.executor.investigate(selection_text, ioc_type=menu_item_id)
        except Exception:
            logger.exception("Context menu investigation of %r failed", selection_text)
            return False
