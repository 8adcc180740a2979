"""Strip non-content markup from a mirrored page and pull out its body."""

from __future__ import annotations

import re
from urllib.parse import unquote

from bs4 import BeautifulSoup, FeatureNotFound, Tag

STRIP_TAGS = ["script", "style", "link", "meta", "iframe", "noscript"]

# Flask templates that were published without being rendered.
STATIC_PLACEHOLDER_RE = re.compile(
    r"""\{\{\s*url_for\(\s*['"]static['"]\s*,\s*filename\s*=\s*['"]([^'"]+)['"]\s*\)\s*\}\}"""
)


def soup_with_fallback(html: str | bytes) -> BeautifulSoup:
    for parser in ("lxml", "html5lib", "html.parser"):
        try:
            return BeautifulSoup(html, parser)
        except FeatureNotFound:
            continue
    return BeautifulSoup(html, "html.parser")


def clean_container(container: Tag) -> None:
    for tag in container.find_all(STRIP_TAGS):
        tag.decompose()


def rewrite_static_placeholders(container: Tag) -> int:
    rewritten = 0
    for img in container.find_all("img", src=True):
        src = unquote(img["src"])
        fixed, count = STATIC_PLACEHOLDER_RE.subn(lambda m: m.group(1), src)
        if count:
            img["src"] = fixed
            rewritten += count
    return rewritten


def has_content(node: Tag) -> bool:
    return bool(node.get_text(strip=True)) or node.find(True) is not None


def sanitize_markup(markup: str | bytes) -> Tag | None:
    """Return the cleaned ``<body>`` of ``markup``, or None when there is nothing to keep."""
    soup = soup_with_fallback(markup)
    clean_container(soup)
    rewrite_static_placeholders(soup)
    body = soup.find("body")
    if body is None or not has_content(body):
        return None
    return body
