from __future__ import annotations

from urllib.parse import quote, urlsplit

from .models import IOCType
from .patterns import FULL_URL_PATTERN, normalise_url

# Same unescaped set as JavaScript's encodeURIComponent.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def sanitise_ip(value: str) -> str:
    """Bracket the last separator of an IP so it won't render as a link.

    Only the later of the last ``.`` and the last ``:`` is bracketed, so IPv6
    addresses come out partially bracketed:

    >>> sanitise_ip("192.168.1.1")
    '192.168.1[.]1'
    >>> sanitise_ip("2001:db8::1")
    '2001:db8:[:]1'
    """
    last_dot = value.rfind(".")
    last_colon = value.rfind(":")

    if last_dot > last_colon:
        return value[:last_dot] + "[.]" + value[last_dot + 1:]
    if last_colon > -1:
        return value[:last_colon] + "[:]" + value[last_colon + 1:]
    return value


def sanitise_url(value: str) -> str:
    return value.replace(".", "[.]")


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def url_hostname(url: str) -> str:
    """Lower-cased host of ``url``, or "" when it has none.

    >>> url_hostname("https://user@Sub.Example.com:8080/x")
    'sub.example.com'
    >>> url_hostname("https://a℀b@example.com")
    'example.com'
    """
    try:
        return urlsplit(url).hostname or ""
    except ValueError:
        # urlsplit refuses a netloc whose userinfo changes under NFKC (e.g. U+2100).
        match = FULL_URL_PATTERN.fullmatch(url)
        return match.group("host").lower() if match else ""


def process_url_template(template: str, value: str, ioc_type: IOCType | str = IOCType.IP) -> str:
    """Fill a lookup URL template with an IOC and return an absolute URL.

    Placeholders (first occurrence each):
        ip    -> {ip}
        hash  -> {hash}
        url   -> {url}, {encodedUrl}, {domain}; the IOC is made absolute first

    The filled string is normalised again, so templates stored without a
    scheme ("shodan.io/host/{ip}") still open as https URLs.
    """
    ioc_type = IOCType(ioc_type)

    if ioc_type is IOCType.IP:
        filled = template.replace("{ip}", value, 1)
    elif ioc_type is IOCType.HASH:
        filled = template.replace("{hash}", value, 1)
    else:
        absolute = normalise_url(value)
        filled = (
            template.replace("{url}", absolute, 1)
            .replace("{encodedUrl}", encode_uri_component(absolute), 1)
            .replace("{domain}", url_hostname(absolute), 1)
        )

    return normalise_url(filled)
