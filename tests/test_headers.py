"""Tests for outbound header synthesis."""

from core.headers import (
    BROWSER_POLICY,
    BROWSER_TEMPLATE,
    CHROME_USER_AGENT,
    DIRECT_POLICY,
    HeaderBuilder,
    HeaderPolicy,
)


def test_template_only_when_nothing_forwarded():
    headers = HeaderBuilder().build({}, DIRECT_POLICY)

    assert dict(headers) == dict(BROWSER_TEMPLATE)
    assert headers["user-agent"] == CHROME_USER_AGENT
    assert headers["Sec-Fetch-Mode"] == "navigate"


def test_direct_policy_forwards_client_fingerprint():
    inbound = {
        "user-agent": "Mozilla/5.0 (X11; Linux x86_64) Firefox/128.0",
        "accept-language": "de-DE",
        "cookie": "sid=abc",
        "referer": "https://host.example/",
        "authorization": "Bearer t",
        "x-forwarded-for": "203.0.113.9",
        "host": "proxy.example",
    }

    headers = HeaderBuilder().build(inbound, DIRECT_POLICY)

    assert headers["User-Agent"] == inbound["user-agent"]
    assert headers["Accept-Language"] == "de-DE"
    assert headers["Cookie"] == "sid=abc"
    assert headers["Referer"] == "https://host.example/"
    assert headers["Authorization"] == "Bearer t"
    assert "x-forwarded-for" not in headers
    assert "host" not in headers
    # Canonical casing of forwarded names
    assert "Cookie" in list(headers)
    assert headers["DNT"] == "1"


def test_browser_policy_keeps_synthetic_user_agent():
    inbound = {"User-Agent": "curl/8.0", "Cookie": "sid=abc", "Accept-Language": "fr"}

    headers = HeaderBuilder().build(inbound, BROWSER_POLICY)

    assert headers["User-Agent"] == CHROME_USER_AGENT
    assert headers["Accept-Language"] == "en-US,en;q=0.9"
    assert headers["Cookie"] == "sid=abc"


def test_blank_forwarded_values_do_not_override_template():
    headers = HeaderBuilder().build({"user-agent": "  ", "cookie": ""}, DIRECT_POLICY)

    assert headers["User-Agent"] == CHROME_USER_AGENT
    assert "cookie" not in headers


def test_custom_policy_and_without():
    policy = HeaderPolicy(name="custom", forwarded=("x-trace-id",))

    headers = HeaderBuilder().build({"X-Trace-Id": "42"}, policy)

    assert headers["x-trace-id"] == "42"
    trimmed = headers.without("user-agent", "X-TRACE-ID")
    assert "User-Agent" not in trimmed
    assert "x-trace-id" not in trimmed
    assert trimmed["Accept-Encoding"] == "gzip, deflate, br"
