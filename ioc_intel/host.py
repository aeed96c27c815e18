"""Host collaborators: storage area, context menus, tabs, clipboard.

Each collaborator is a small async protocol so the preference engine and the
executor can run against a browser bridge, a desktop shell or test doubles.
The concrete classes here cover a terminal/desktop host.
"""

from __future__ import annotations

import asyncio
import copy
import json
import sys
import webbrowser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, TextIO, Tuple

from .errors import StorageError
from .logging_utils import get_logger

logger = get_logger()


class StorageArea(Protocol):
    async def get(self) -> Dict[str, Any]: ...

    async def set(self, document: Dict[str, Any]) -> None: ...


class ContextMenus(Protocol):
    async def remove_all(self) -> None: ...

    async def create(self, item_id: str, title: str) -> None: ...


class Tabs(Protocol):
    async def active_index(self) -> Optional[int]: ...

    async def create(self, url: str, index: int, active: bool = False) -> Any: ...


class Clipboard(Protocol):
    async def write(self, text: str) -> None: ...


# ---------------------------------------------------------------------------
# Storage areas
# ---------------------------------------------------------------------------

class JsonFileStorageArea:
    """A single JSON document on disk. Missing file reads as ``{}``."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid JSON in {self.path}: {e}", path=str(self.path)) from e
        if not isinstance(data, dict):
            raise StorageError(f"Expected a JSON object in {self.path}", path=str(self.path))
        return data

    def _write(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Atomic write: write tmp then replace.
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)

    async def get(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._read)

    async def set(self, document: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, document)
        logger.debug("Wrote preferences to %s", self.path)


class MemoryStorageArea:
    """In-process storage area. Copies on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.document: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.get_calls = 0
        self.set_calls = 0
        self.fail_next_get: Optional[BaseException] = None
        self.fail_next_set: Optional[BaseException] = None

    async def get(self) -> Dict[str, Any]:
        self.get_calls += 1
        if self.fail_next_get is not None:
            exc, self.fail_next_get = self.fail_next_get, None
            raise exc
        return copy.deepcopy(self.document)

    async def set(self, document: Dict[str, Any]) -> None:
        self.set_calls += 1
        if self.fail_next_set is not None:
            exc, self.fail_next_set = self.fail_next_set, None
            raise exc
        self.document = copy.deepcopy(document)


# ---------------------------------------------------------------------------
# Context menus
# ---------------------------------------------------------------------------

class LoggingContextMenus:
    """Keeps the current menu items in memory and logs changes."""

    def __init__(self) -> None:
        self.items: Dict[str, str] = {}

    async def remove_all(self) -> None:
        self.items.clear()

    async def create(self, item_id: str, title: str) -> None:
        self.items[item_id] = title
        logger.debug("Context menu item %r -> %r", item_id, title)


# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------

@dataclass
class RecordingTabs:
    """Records tab creations without opening anything."""

    current_index: Optional[int] = 0
    created: List[Tuple[str, int, bool]] = field(default_factory=list)

    async def active_index(self) -> Optional[int]:
        return self.current_index

    async def create(self, url: str, index: int, active: bool = False) -> int:
        self.created.append((url, index, active))
        return len(self.created) - 1


class SystemBrowserTabs(RecordingTabs):
    """Opens URLs in the default system browser.

    The browser doesn't report tab positions back, so indices are tracked
    locally and are only meaningful relative to each other.
    """

    async def create(self, url: str, index: int, active: bool = False) -> int:
        handle = await super().create(url, index, active)
        opened = await asyncio.to_thread(webbrowser.open_new_tab, url)
        if not opened:
            logger.warning("No browser accepted %s", url)
        return handle


# ---------------------------------------------------------------------------
# Clipboard
# ---------------------------------------------------------------------------

class StreamClipboard:
    """Best-effort clipboard for a terminal host: writes the text to a stream."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream
        self.last_text: Optional[str] = None

    async def write(self, text: str) -> None:
        self.last_text = text
        stream = self.stream or sys.stdout
        stream.write(text + "\n")
        stream.flush()
