"""Bring persisted preferences back into the shape of the defaults.

Whatever comes out of storage (stale, hand-edited, partially typed) is merged
field by field onto the default configuration:

  - keys unknown to the defaults are dropped
  - scalars are taken from the raw object only when they have the right type
  - flag trees follow the default tree's names and nesting; only ``value`` is
    taken from the raw object
  - URL templates that fail validation are dropped (never repaired)

Nothing here raises on bad input; invalid pieces fall back to defaults.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel

from .defaults import DEFAULT_PREFERENCES
from .logging_utils import get_logger
from .models import Configuration, Flag, IOCDefinition
from .patterns import is_valid_url

logger = get_logger()


def _as_plain(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, Mapping):
        return {}
    out: Dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, BaseModel):
            value = value.model_dump(by_alias=True)
        out[key] = value
    return out


def _is_int(value: Any) -> bool:
    # bool is an int subclass; a persisted `true` is not a version number.
    return isinstance(value, int) and not isinstance(value, bool)


def _valid_urls(urls: Sequence[Any]) -> List[str]:
    return [u for u in urls if isinstance(u, str) and is_valid_url(u)]


def _reconcile_urls(raw_urls: Any, default_urls: List[str], key: str) -> List[str]:
    source = raw_urls if isinstance(raw_urls, list) else default_urls
    kept = _valid_urls(source)
    if len(kept) != len(source):
        logger.debug("Dropped %d invalid URL template(s) from %r", len(source) - len(kept), key)
    return kept


def _reconcile_flags(raw_flags: Any, default_flags: Sequence[Flag]) -> List[Flag]:
    candidates = [f for f in raw_flags if isinstance(f, Mapping)] if isinstance(raw_flags, list) else []

    out: List[Flag] = []
    for default in default_flags:
        match: Optional[Mapping[str, Any]] = next(
            (f for f in candidates if f.get("name") == default.name), None
        )

        value = match.get("value") if match is not None else None
        if not isinstance(value, bool):
            value = default.value

        sub_flags: Optional[List[Flag]] = None
        if default.sub_flags is not None:
            raw_sub = None
            if match is not None:
                raw_sub = match.get("subFlags", match.get("sub_flags"))
            sub_flags = _reconcile_flags(raw_sub, default.sub_flags)

        out.append(Flag(name=default.name, value=value, sub_flags=sub_flags))
    return out


def _reconcile_definition(raw: Mapping[str, Any], default: IOCDefinition, key: str) -> IOCDefinition:
    name = raw.get("name")
    active = raw.get("active")
    version = raw.get("version")

    return IOCDefinition(
        name=name if isinstance(name, str) else default.name,
        active=active if isinstance(active, bool) else default.active,
        flags=_reconcile_flags(raw.get("flags"), default.flags),
        urls=_reconcile_urls(raw.get("urls"), default.urls, key),
        version=version if _is_int(version) else default.version,
    )


def reconcile(raw: Any, defaults: Optional[Configuration] = None) -> Configuration:
    """Merge ``raw`` onto ``defaults`` and return a configuration of the default shape.

    ``raw`` may be a JSON document, a configuration of models, or garbage.
    The result never shares objects with either input and is stable under a
    second pass: ``reconcile(reconcile(x)) == reconcile(x)``.
    """
    if defaults is None:
        defaults = DEFAULT_PREFERENCES

    source = _as_plain(raw)

    unknown = [k for k in source if k not in defaults]
    if unknown:
        logger.debug("Dropping unknown preference keys: %s", ", ".join(map(str, unknown)))

    out: Configuration = {}
    for key, default in defaults.items():
        entry = source.get(key)
        out[key] = _reconcile_definition(entry if isinstance(entry, Mapping) else {}, default, key)
    return out


def strip_invalid_urls(config: Configuration) -> int:
    """Remove invalid URL templates from every definition in place.

    Returns the number of entries removed.
    """
    removed = 0
    for definition in config.values():
        kept = _valid_urls(definition.urls)
        removed += len(definition.urls) - len(kept)
        definition.urls[:] = kept
    return removed


def dump_configuration(config: Configuration) -> Dict[str, Any]:
    """Render a configuration as the persisted JSON document."""
    return {key: definition.model_dump(by_alias=True, exclude_none=True) for key, definition in config.items()}
