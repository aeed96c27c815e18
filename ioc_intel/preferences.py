from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Tuple

from .config import AppConfig
from .defaults import DEFAULT_PREFERENCES
from .flags import set_flag_value
from .host import ContextMenus, JsonFileStorageArea, StorageArea
from .logging_utils import get_logger
from .models import Configuration, IOCDefinition, copy_configuration
from .patterns import is_valid_url
from .reconcile import dump_configuration, reconcile, strip_invalid_urls
from .state_manager import StateManager

logger = get_logger()


class PreferencesState:
    """User preferences kept in memory and persisted through a storage area.

    The state starts as a copy of the defaults and is overwritten by the
    reconciled storage contents once ``initialise()`` (or ``reload()``) has
    run. Every mutation goes through a method here; each one schedules a
    debounced save before returning, once the initial load has completed and
    auto-save has been enabled.

    Nothing is saved before a successful load, so a failed start-up load can
    never overwrite stored preferences with defaults.
    """

    def __init__(
        self,
        storage: StorageArea,
        menus: Optional[ContextMenus] = None,
        *,
        delay_s: float = 0.5,
        max_wait_s: float = 1.0,
        defaults: Optional[Configuration] = None,
    ):
        self.storage = storage
        self.menus = menus
        self.defaults: Configuration = defaults if defaults is not None else DEFAULT_PREFERENCES

        self.state_manager: StateManager[Configuration] = StateManager(
            self._load_state,
            self._save_state,
            delay_s=delay_s,
            max_wait_s=max_wait_s,
            initial_state=copy_configuration(self.defaults),
        )
        self.storage_loaded = False
        self.auto_save_enabled = False
        self._menu_keys: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_config(
        cls,
        cfg: AppConfig,
        storage: Optional[StorageArea] = None,
        menus: Optional[ContextMenus] = None,
    ) -> "PreferencesState":
        return cls(
            storage if storage is not None else JsonFileStorageArea(cfg.preferences_path),
            menus,
            delay_s=cfg.save_delay_s,
            max_wait_s=cfg.save_max_wait_s,
        )

    @property
    def state(self) -> Configuration:
        return self.state_manager.state

    # -------- Loading --------
    async def initialise(self) -> bool:
        """Process-start load. On failure, log and keep running on defaults."""
        try:
            await self.reload()
        except Exception as e:
            logger.error("Failed to load from storage: %s", e, exc_info=True)
            return False
        return True

    async def reload(self) -> Configuration:
        """Load persisted preferences into the live state. Errors propagate."""
        await self.state_manager.load()
        self.storage_loaded = True
        return self.state

    async def get_state(self) -> Configuration:
        """Return the live state, loading it first if that hasn't happened yet.

        The process may have been restarted since the last load; if loading
        fails again the defaults-backed state is returned.
        """
        if not self.storage_loaded:
            await self.initialise()
        return self.state

    async def handle_storage_change(self) -> None:
        """Storage changed underneath us (another process, a sync). Reload unconditionally."""
        try:
            await self.reload()
        except Exception:
            logger.exception("Failed to reload preferences after a storage change")

    def get_definition(self, key: str) -> Optional[IOCDefinition]:
        return self.state.get(key)

    # -------- Saving --------
    def enable_auto_save(self) -> None:
        """Arm debounced saving for subsequent mutations. Later calls are no-ops."""
        if self.auto_save_enabled:
            return
        self.auto_save_enabled = True

    async def flush(self) -> None:
        await self.state_manager.flush()

    async def _changed(self) -> None:
        if self.storage_loaded and self.auto_save_enabled:
            self.state_manager.save()
        await self._sync_menus(self.state)

    # -------- Mutations --------
    def _require(self, key: str) -> IOCDefinition:
        definition = self.state.get(key)
        if definition is None:
            raise KeyError(f"Unknown IOC type: {key!r}")
        return definition

    async def set_flag(self, key: str, path: Sequence[str], value: bool) -> bool:
        """Set a (possibly nested) flag. Returns False if the path doesn't exist."""
        if not set_flag_value(self._require(key).flags, path, value):
            return False
        await self._changed()
        return True

    async def set_active(self, key: str, active: bool) -> None:
        self._require(key).active = bool(active)
        await self._changed()

    async def add_url(self, key: str, url: str) -> bool:
        """Append a lookup URL template. Invalid templates are rejected."""
        definition = self._require(key)
        if not isinstance(url, str) or not is_valid_url(url):
            logger.info("Rejected invalid URL template for %s: %r", key, url)
            return False
        definition.urls.append(url.strip())
        await self._changed()
        return True

    async def remove_url(self, key: str, index: int) -> str:
        removed = self._require(key).urls.pop(index)
        await self._changed()
        return removed

    async def move_url(self, key: str, index: int, new_index: int) -> None:
        urls = self._require(key).urls
        urls.insert(new_index, urls.pop(index))
        await self._changed()

    async def replace_state(self, config: Mapping[str, Any]) -> None:
        """Replace the whole state with ``config``, reconciled against the defaults."""
        cleaned = reconcile(config, self.defaults)
        self.state.clear()
        self.state.update(cleaned)
        await self._changed()

    async def reset_to_defaults(self) -> None:
        await self.replace_state(self.defaults)

    # -------- Storage callbacks --------
    async def _load_state(self) -> Configuration:
        raw = await self.storage.get()
        cleaned = reconcile(raw, self.defaults)
        await self._sync_menus(cleaned, force=True)
        return cleaned

    async def _save_state(self, snapshot: Configuration) -> None:
        # Load and replace_state reconcile; only URL lists can be edited
        # directly on the live state.
        removed = strip_invalid_urls(snapshot)
        if removed:
            logger.warning("Dropped %d invalid URL template(s) before saving", removed)
        document = {key: definition for key, definition in snapshot.items() if key in self.defaults}
        await self.storage.set(dump_configuration(document))

    async def _sync_menus(self, config: Configuration, force: bool = False) -> None:
        """Recreate one context-menu item per active IOC type when that set changes."""
        if self.menus is None:
            return
        keys = tuple(key for key, definition in config.items() if definition.active)
        if not force and keys == self._menu_keys:
            return
        try:
            await self.menus.remove_all()
            for key in keys:
                await self.menus.create(key, config[key].name)
        except Exception:
            logger.warning("Unable to update context menus", exc_info=True)
            return
        self._menu_keys = keys
