"""IOC normalisation and type detection.

The precedence is fixed: IPv4, IPv6, hash, then URL. The URL pattern is
permissive on purpose (scheme and userinfo optional) so bare domains and
pasted lookup templates both count as URLs.
"""

from __future__ import annotations

import re
from typing import Optional

from .models import IOCType

IPV4_PATTERN = re.compile(
    r"^(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)(\.(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)){3}$"
)

IPV6_PATTERN = re.compile(
    r"^("
    r"([a-f0-9]{1,4}:){7,7}[a-f0-9]{1,4}"
    r"|([a-f0-9]{1,4}:){1,7}:"
    r"|([a-f0-9]{1,4}:){1,6}:[a-f0-9]{1,4}"
    r"|([a-f0-9]{1,4}:){1,5}(:[a-f0-9]{1,4}){1,2}"
    r"|([a-f0-9]{1,4}:){1,4}(:[a-f0-9]{1,4}){1,3}"
    r"|([a-f0-9]{1,4}:){1,3}(:[a-f0-9]{1,4}){1,4}"
    r"|([a-f0-9]{1,4}:){1,2}(:[a-f0-9]{1,4}){1,5}"
    r"|[a-f0-9]{1,4}:((:[a-f0-9]{1,4}){1,6})"
    r"|:((:[a-f0-9]{1,4}){1,7}|:)"
    r"|fe80:(:[a-f0-9]{0,4}){0,4}%[0-9a-z]{1,}"
    r"|::(ffff(:0{1,4}){0,1}:){0,1}((25[0-5]|(2[0-4]|1{0,1}[0-9]){0,1}[0-9])\.){3,3}"
    r"(25[0-5]|(2[0-4]|1{0,1}[0-9]){0,1}[0-9])"
    r"|([a-f0-9]{1,4}:){1,4}:((25[0-5]|(2[0-4]|1{0,1}[0-9]){0,1}[0-9])\.){3,3}"
    r"(25[0-5]|(2[0-4]|1{0,1}[0-9]){0,1}[0-9])"
    r")$",
    re.IGNORECASE | re.ASCII,
)

# MD5, SHA-1, SHA-256
HASH_PATTERN = re.compile(r"^[a-f0-9]{32}$|^[a-f0-9]{40}$|^[a-f0-9]{64}$", re.IGNORECASE | re.ASCII)

# Host letters are ASCII only; \s stays Unicode-aware. No IGNORECASE: under
# Unicode case folding [a-z] would also accept "ı" and "ſ".
FULL_URL_PATTERN = re.compile(
    r"^([hH][tT][tT][pP][sS]?://)?"
    r"(([^\s:@/]+(:[^\s:@/]*)?@)?"  # userinfo
    r"(?P<host>(?:[a-zA-Z0-9-]+\.)+[a-zA-Z]{2,})"
    r"(:[0-9]{2,5})?"
    r"(/[^\s]*)?"
    r"(\?[^\s#]*)?"
    r"(#[^\s]*)?)$"
)

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE | re.ASCII)


def normalise_string(value: str) -> str:
    """Strip defanging brackets and whitespace, then lower-case.

    >>> normalise_string("  1.2.3[.]4  ")
    '1.2.3.4'
    >>> normalise_string("  EXAMPLE[.]COM  ")
    'example.com'
    """
    return value.replace("[", "").replace("]", "").strip().lower()


def normalise_url(value: str) -> str:
    """Prefix ``https://`` unless the value already carries an http(s) scheme."""
    if not _SCHEME_RE.match(value):
        return f"https://{value}"
    return value


def is_valid_url(value: str) -> bool:
    """Return True for absolute or bare http(s) URLs (scheme optional)."""
    normalised = normalise_string(value)
    if not normalised:
        return False
    return bool(FULL_URL_PATTERN.fullmatch(normalised))


def is_ip(value: str) -> bool:
    return bool(IPV4_PATTERN.fullmatch(value) or IPV6_PATTERN.fullmatch(value))


def is_hash(value: str) -> bool:
    return bool(HASH_PATTERN.fullmatch(value))


def detect_ioc_type(value: str, *, empty_as_none: bool = True) -> Optional[IOCType]:
    """Detect the IOC type of ``value`` after normalisation.

    ``empty_as_none`` short-circuits an empty normalised string before any
    pattern is tried. With it off, the pattern table alone decides.
    """
    normalised = normalise_string(value)

    if empty_as_none and not normalised:
        return None

    if is_ip(normalised):
        return IOCType.IP

    if is_hash(normalised):
        return IOCType.HASH

    if FULL_URL_PATTERN.fullmatch(normalised):
        return IOCType.URL

    return None
