from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class IOCType(str, Enum):
    IP = "ip"
    HASH = "hash"
    URL = "url"


class Flag(BaseModel):
    """A named toggle, optionally carrying child toggles.

    Names are only unique among siblings; lookups take the first match.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    value: bool
    sub_flags: Optional[List[Flag]] = Field(default=None, alias="subFlags")


class IOCDefinition(BaseModel):
    name: str
    active: bool = True
    flags: List[Flag] = Field(default_factory=list)
    # URL templates, e.g. "shodan.io/host/{ip}"
    urls: List[str] = Field(default_factory=list)
    # Carried through load/save untouched; nothing migrates on it yet.
    version: int = 1


# Keyed by IOC type value ("ip", "hash", "url").
Configuration = Dict[str, IOCDefinition]


def copy_configuration(config: Configuration) -> Configuration:
    """Deep copy a configuration so callers never share model instances."""
    return {key: definition.model_copy(deep=True) for key, definition in config.items()}


Flag.model_rebuild()
