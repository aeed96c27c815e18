"""IOC Intel: classify indicators of compromise and open configured lookups.

Preferences are reconciled against bundled defaults and persisted with
debounced saves.
"""

from .actions import ActionPlan, IOCIntelExecutor, resolve_actions
from .defaults import DEFAULT_PREFERENCES, default_preferences
from .flags import get_flag_value, set_flag_value
from .messaging import MessageRouter
from .models import Configuration, Flag, IOCDefinition, IOCType
from .patterns import detect_ioc_type, is_valid_url, normalise_string, normalise_url
from .preferences import PreferencesState
from .reconcile import dump_configuration, reconcile, strip_invalid_urls
from .state_manager import Debouncer, StateManager
from .templates import process_url_template, sanitise_ip, sanitise_url

__version__ = "0.1.0"

__all__ = [
    "ActionPlan",
    "Configuration",
    "DEFAULT_PREFERENCES",
    "Debouncer",
    "Flag",
    "IOCDefinition",
    "IOCIntelExecutor",
    "IOCType",
    "MessageRouter",
    "PreferencesState",
    "StateManager",
    "default_preferences",
    "detect_ioc_type",
    "dump_configuration",
    "get_flag_value",
    "is_valid_url",
    "normalise_string",
    "normalise_url",
    "process_url_template",
    "reconcile",
    "resolve_actions",
    "sanitise_ip",
    "sanitise_url",
    "set_flag_value",
    "strip_invalid_urls",
]
