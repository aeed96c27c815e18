"""Decide and perform what happens when an IOC is investigated.

``resolve_actions`` is pure: given a type, a normalised value and one IOC
definition it returns the text to copy (if any) and the lookup URLs to open.
``IOCIntelExecutor`` runs that plan against the host collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .flags import get_flag_value
from .host import Clipboard, Tabs
from .logging_utils import get_logger
from .models import IOCDefinition, IOCType
from .patterns import FULL_URL_PATTERN, detect_ioc_type, is_hash, is_ip, normalise_string, normalise_url
from .preferences import PreferencesState
from .templates import process_url_template, sanitise_ip, sanitise_url

logger = get_logger()

# (copy flag path, sanitise flag path) per type; hashes have no sanitiser.
_COPY_FLAGS: Dict[IOCType, Tuple[List[str], Optional[List[str]]]] = {
    IOCType.IP: (["Copy IP"], ["Copy IP", "Sanitise IP"]),
    IOCType.HASH: (["Copy Hash"], None),
    IOCType.URL: (["Copy URL"], ["Copy URL", "Sanitise URL"]),
}


@dataclass
class ActionPlan:
    ioc_type: Optional[IOCType]
    value: str
    copy_text: Optional[str] = None
    urls: List[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.copy_text is None and not self.urls


def _matches_type(ioc_type: IOCType, value: str) -> bool:
    if ioc_type is IOCType.IP:
        return is_ip(value)
    if ioc_type is IOCType.HASH:
        return is_hash(value)
    return bool(FULL_URL_PATTERN.fullmatch(normalise_url(value)))


def _sanitise(ioc_type: IOCType, value: str) -> str:
    if ioc_type is IOCType.IP:
        return sanitise_ip(value)
    if ioc_type is IOCType.URL:
        return sanitise_url(value)
    return value


def resolve_actions(ioc_type: Optional[IOCType | str], value: str, definition: IOCDefinition) -> ActionPlan:
    """Build the copy/open plan for one normalised IOC value.

    An unknown type, or a value that doesn't actually match its type, yields
    an empty plan.
    """
    try:
        resolved = IOCType(ioc_type) if ioc_type is not None else None
    except ValueError:
        resolved = None

    if resolved is None or not _matches_type(resolved, value):
        return ActionPlan(ioc_type=resolved, value=value)

    plan = ActionPlan(ioc_type=resolved, value=value)

    copy_path, sanitise_path = _COPY_FLAGS[resolved]
    if get_flag_value(definition.flags, copy_path):
        text = value
        if sanitise_path is not None and get_flag_value(definition.flags, sanitise_path):
            text = _sanitise(resolved, value)
        plan.copy_text = text

    plan.urls = [process_url_template(template, value, resolved) for template in definition.urls]
    return plan


class IOCIntelExecutor:
    """Runs investigation requests: copy to clipboard, open lookup tabs."""

    def __init__(
        self,
        preferences: PreferencesState,
        tabs: Tabs,
        clipboard: Optional[Clipboard] = None,
        *,
        empty_as_none: bool = True,
    ):
        self.preferences = preferences
        self.tabs = tabs
        self.clipboard = clipboard
        self.empty_as_none = empty_as_none

    async def plan(self, ioc: str, ioc_type: Optional[IOCType | str] = None) -> ActionPlan:
        """Classify ``ioc`` (unless a type is forced) and resolve its plan."""
        state = await self.preferences.get_state()
        value = normalise_string(ioc)

        if ioc_type is None:
            ioc_type = detect_ioc_type(ioc, empty_as_none=self.empty_as_none)
        if ioc_type is None:
            logger.info("No IOC type detected for %r", ioc)
            return ActionPlan(ioc_type=None, value=value)

        try:
            resolved = IOCType(ioc_type)
        except ValueError:
            logger.info("Unsupported IOC type %r", ioc_type)
            return ActionPlan(ioc_type=None, value=value)

        definition = state.get(resolved.value)
        if definition is None or not definition.active:
            logger.info("IOC type %r is not configured or inactive", resolved.value)
            return ActionPlan(ioc_type=None, value=value)

        return resolve_actions(resolved, value, definition)

    async def investigate(self, ioc: str, ioc_type: Optional[IOCType | str] = None) -> bool:
        """Investigate one IOC. Returns False when nothing was done.

        Collaborator errors (clipboard, tabs) propagate.
        """
        plan = await self.plan(ioc, ioc_type)
        if plan.empty:
            return False

        if plan.copy_text is not None and self.clipboard is not None:
            await self.clipboard.write(plan.copy_text)

        # Captured once so the batch lands in contiguous slots.
        active = await self.tabs.active_index()
        index = active + 1 if active is not None else 0
        for url in plan.urls:
            await self.tabs.create(url, index, active=False)
            index += 1

        logger.info(
            "Investigated %r as %s: opened %d lookup(s)",
            plan.value,
            plan.ioc_type.value if plan.ioc_type else "unknown",
            len(plan.urls),
        )
        return True
