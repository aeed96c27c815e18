"""Bundled default preferences.

This is the canonical schema: reconciliation drops anything that is not here
and refills anything that is missing.
"""

from __future__ import annotations

from .models import Configuration, Flag, IOCDefinition, copy_configuration

DEFAULT_PREFERENCES: Configuration = {
    "ip": IOCDefinition(
        name="IP",
        active=True,
        flags=[
            Flag(
                name="Copy IP",
                value=True,
                sub_flags=[Flag(name="Sanitise IP", value=True)],
            ),
        ],
        urls=[
            "abuseipdb.com/check/{ip}",
            "threatfox.abuse.ch/browse.php?search=ioc%3A{ip}",
            "shodan.io/host/{ip}",
        ],
        version=2,
    ),
    "hash": IOCDefinition(
        name="Hash",
        active=True,
        flags=[Flag(name="Copy Hash", value=True)],
        urls=[
            "virustotal.com/gui/file/{hash}",
            "urlhaus.abuse.ch/browse.php?search={hash}",
        ],
        version=2,
    ),
    "url": IOCDefinition(
        name="URL",
        active=True,
        flags=[
            Flag(
                name="Copy URL",
                value=True,
                sub_flags=[Flag(name="Sanitise URL", value=True)],
            ),
        ],
        urls=[
            "urlhaus.abuse.ch/browse.php?search={encodedUrl}",
            "mxtoolbox.com/SuperTool.aspx?action=whois%3a{domain}",
            "virustotal.com/gui/domain/{domain}",
        ],
        version=2,
    ),
}


def default_preferences() -> Configuration:
    """Return a fresh, independent copy of the default preferences."""
    return copy_configuration(DEFAULT_PREFERENCES)
