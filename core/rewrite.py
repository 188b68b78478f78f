"""HTML rewriting that keeps page navigation routed through the proxy."""

from dataclasses import dataclass
from urllib.parse import quote, urljoin, urlsplit

from bs4 import BeautifulSoup
from bs4.element import Doctype, Tag

from core.protocols import RequestLogger
from core.request_types import RewriteContext

# http-equiv values that would block framing or the proxy path
BLOCKING_META = {
    "x-frame-options",
    "content-security-policy",
    "content-security-policy-report-only",
    "x-content-type-options",
}

EMBED_DENYLIST = ("facebook.com", "twitter.com", "x.com", "instagram.com")

PROXYABLE_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class RewriteRule:
    """Route one tag attribute through the proxy."""

    tag: str
    attribute: str


REWRITE_RULES: tuple[RewriteRule, ...] = (
    RewriteRule("a", "href"),
    RewriteRule("form", "action"),
    RewriteRule("img", "src"),
    RewriteRule("script", "src"),
    RewriteRule("link", "href"),
)


def proxied_url(proxy_endpoint_base: str, absolute_url: str) -> str:
    return f"{proxy_endpoint_base}?url={quote(absolute_url, safe='')}"


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def embed_stylesheet() -> str:
    hidden = ",\n".join(f'iframe[src*="{domain}"]' for domain in EMBED_DENYLIST)
    return (
        "body { margin: 0; padding: 0; overflow-x: auto; }\n"
        f"{hidden} {{ display: none !important; }}\n"
    )


class URLRewriter:
    """Rewrite fetched HTML for embedding inside the proxy's iframe."""

    def __init__(
        self,
        logger: RequestLogger | None = None,
        rules: tuple[RewriteRule, ...] = REWRITE_RULES,
    ) -> None:
        self._logger = logger
        self._rules: dict[str, list[str]] = {}
        for rule in rules:
            self._rules.setdefault(rule.tag, []).append(rule.attribute)

    def rewrite(self, html: str, context: RewriteContext) -> str:
        """Return the rewritten document."""
        soup = BeautifulSoup(html, "html.parser")
        head = self._ensure_head(soup)

        self._strip_blocking_meta(soup)
        base = soup.new_tag("base", href=f"{origin_of(context.base_url)}/")
        head.insert(0, base)

        for element in soup.find_all(list(self._rules)):
            for attribute in self._rules[element.name]:
                self._rewrite_attribute(element, attribute, context)

        style = soup.new_tag("style")
        style.string = embed_stylesheet()
        head.append(style)
        return soup.decode(formatter="html5")

    def _rewrite_attribute(self, element: Tag, attribute: str, context: RewriteContext) -> None:
        value = element.get(attribute)
        if not isinstance(value, str):
            return
        value = value.strip()
        if not value or value.lower().startswith("data:"):
            return
        try:
            absolute = urljoin(context.base_url, value)
            scheme = urlsplit(absolute).scheme.lower()
        except ValueError as e:
            self._warn(f"Skipping malformed {element.name}[{attribute}]", value=value, error=e)
            return
        if scheme not in PROXYABLE_SCHEMES:
            return
        element[attribute] = proxied_url(context.proxy_endpoint_base, absolute)

    def _strip_blocking_meta(self, soup: BeautifulSoup) -> None:
        for meta in soup.find_all("meta"):
            http_equiv = meta.get("http-equiv")
            if isinstance(http_equiv, str) and http_equiv.strip().lower() in BLOCKING_META:
                meta.decompose()

    def _ensure_head(self, soup: BeautifulSoup) -> Tag:
        head = soup.find("head")
        if isinstance(head, Tag):
            return head
        head = soup.new_tag("head")
        html_tag = soup.find("html")
        if isinstance(html_tag, Tag):
            html_tag.insert(0, head)
        else:
            leading_doctype = bool(soup.contents) and isinstance(soup.contents[0], Doctype)
            soup.insert(1 if leading_doctype else 0, head)
        return head

    def _warn(self, message: str, **extra: object) -> None:
        if self._logger:
            self._logger.log_warning(message, **extra)
