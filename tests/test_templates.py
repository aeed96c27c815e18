import pytest

from ioc_intel.models import IOCType
from ioc_intel.templates import encode_uri_component, process_url_template, sanitise_ip, sanitise_url, url_hostname


@pytest.mark.parametrize(
    "value, expected",
    [
        ("192.168.1.1", "192.168.1[.]1"),
        ("2001:db8::1", "2001:db8:[:]1"),
        ("::ffff:1.2.3.4", "::ffff:1.2.3[.]4"),
        ("localhost", "localhost"),
    ],
)
def test_sanitise_ip(value, expected):
    assert sanitise_ip(value) == expected


def test_sanitise_url_brackets_every_dot():
    assert sanitise_url("https://evil.example.com/a.php") == "https://evil[.]example[.]com/a[.]php"


def test_encode_uri_component_matches_js_safe_set():
    assert encode_uri_component("https://a.com/x?y=1&z=(ok)!") == "https%3A%2F%2Fa.com%2Fx%3Fy%3D1%26z%3D(ok)!"


def test_ip_template():
    assert process_url_template("https://lookup.com?ip={ip}", "192.168.1.1") == "https://lookup.com?ip=192.168.1.1"


def test_template_without_scheme_becomes_https():
    assert process_url_template("shodan.io/host/{ip}", "1.2.3.4", IOCType.IP) == "https://shodan.io/host/1.2.3.4"


def test_only_first_placeholder_is_replaced():
    assert process_url_template("x.com/{ip}/{ip}", "1.2.3.4") == "https://x.com/1.2.3.4/{ip}"


def test_hash_template_accepts_plain_string_type():
    md5 = "d41d8cd98f00b204e9800998ecf8427e"
    assert process_url_template("virustotal.com/gui/file/{hash}", md5, "hash") == f"https://virustotal.com/gui/file/{md5}"


def test_url_placeholders():
    value = "example.com/path?x=1"
    assert (
        process_url_template("urlhaus.abuse.ch/browse.php?search={encodedUrl}", value, IOCType.URL)
        == "https://urlhaus.abuse.ch/browse.php?search=https%3A%2F%2Fexample.com%2Fpath%3Fx%3D1"
    )
    assert process_url_template("check.example.org/?u={url}", value, IOCType.URL) == (
        "https://check.example.org/?u=https://example.com/path?x=1"
    )


def test_domain_placeholder_uses_hostname():
    assert (
        process_url_template("virustotal.com/gui/domain/{domain}", "http://Sub.Example.com:8080/x", IOCType.URL)
        == "https://virustotal.com/gui/domain/sub.example.com"
    )


def test_unknown_type_is_rejected():
    with pytest.raises(ValueError):
        process_url_template("x.com/{ip}", "1.2.3.4", "email")


def test_domain_placeholder_with_userinfo_that_urlsplit_rejects():
    # U+2100 expands to "a/c" under NFKC, which urlsplit refuses in a netloc.
    assert url_hostname("https://a℀b@Example.com/x") == "example.com"
    assert (
        process_url_template("virustotal.com/gui/domain/{domain}", "a℀b@example.com", IOCType.URL)
        == "https://virustotal.com/gui/domain/example.com"
    )
