from __future__ import annotations

from typing import List, Optional, Sequence

from .models import Flag


def _find_flag(flags: Optional[Sequence[Flag]], path: Sequence[str]) -> Optional[Flag]:
    if not path:
        return None

    level: Sequence[Flag] = flags or []
    found: Optional[Flag] = None
    for name in path:
        # First match wins; sibling names are not guaranteed unique.
        found = next((f for f in level if f.name == name), None)
        if found is None:
            return None
        level = found.sub_flags or []
    return found


def get_flag_value(flags: Optional[Sequence[Flag]], path: Sequence[str]) -> Optional[bool]:
    """Get the value of a flag by path.

    Args:
        flags: top-level flags of an IOC definition
        path: names leading to the target flag, e.g. ["Copy IP", "Sanitise IP"]

    Returns:
        The flag's value, or None when any step of the path is missing.
    """
    found = _find_flag(flags, path)
    return found.value if found is not None else None


def set_flag_value(flags: List[Flag], path: Sequence[str], value: bool) -> bool:
    """Set the value of the flag at ``path``. Returns False if it doesn't exist."""
    found = _find_flag(flags, path)
    if found is None:
        return False
    found.value = bool(value)
    return True
