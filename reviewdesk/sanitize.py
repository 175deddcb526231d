"""
Rich-text sanitation and content rules.

Review text allows only basic formatting (``ALLOWED_TAGS``). Post bodies
additionally allow links, lists and images (``RICH_TAGS``); links are
rewritten to open in a new tab without passing referrer or ranking, and
inline ``data:`` images are dropped.
"""
import html as html_lib
import re
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import bleach
from bleach.linkifier import Linker
from pydantic import BaseModel

ALLOWED_TAGS = ["p", "br", "b", "strong", "i", "em", "u", "h3", "h4", "span"]
RICH_TAGS = ALLOWED_TAGS + ["h2", "a", "ul", "ol", "li", "blockquote", "img"]
ALLOWED_ATTRIBUTES = {
    "a": ["href", "rel", "target"],
    "img": ["src", "alt"],
}
ALLOWED_PROTOCOLS = ["http", "https", "mailto"]
UTM_PARAMS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")
LINK_REL = "nofollow noopener noreferrer"

_FORBIDDEN_BLOCKS = re.compile(r"<(script|style|iframe|object|embed|form)\b.*?</\1\s*>", re.I | re.S)
_DATA_IMAGES = re.compile(r"<img\b[^>]*\bsrc\s*=\s*[\"']?\s*data:[^>]*>", re.I)
_IMG_TAGS = re.compile(r"<img\b[^>]*>", re.I)
_ALT_ATTR = re.compile(r"\balt\s*=\s*(\"([^\"]*)\"|'([^']*)')", re.I)
_LINK_TAGS = re.compile(r"<a\b", re.I)
_LONG_WORD = re.compile(r"[^\s]{71,}")
_REPEATED = re.compile(r"(.)\1{6,}")


class ContentRules(BaseModel):
    max_length: int = 3000
    min_length: int = 10
    max_links: int = 20
    max_images: int = 10


class ContentCheck(BaseModel):
    is_valid: bool
    errors: List[str] = []
    char_count: int = 0


def strip_utm(url: str) -> str:
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    query = [(k, v) for k, v in pairs if k not in UTM_PARAMS]
    if len(query) == len(pairs):
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query, safe="/:,"), parts.fragment))


def _secure_link(attrs, new=False, remove_utm=True):
    href = attrs.get((None, "href"))
    if not href:
        return attrs
    if remove_utm:
        # attribute values arrive entity-escaped
        raw = html_lib.unescape(href)
        stripped = strip_utm(raw)
        if stripped != raw:
            attrs[(None, "href")] = stripped
    attrs[(None, "target")] = "_blank"
    attrs[(None, "rel")] = LINK_REL
    return attrs


def sanitize_html(html: Optional[str], tags: Optional[List[str]] = None, remove_utm: bool = True) -> str:
    if not html:
        return ""
    tags = ALLOWED_TAGS if tags is None else tags
    html = _FORBIDDEN_BLOCKS.sub("", html)
    html = _DATA_IMAGES.sub("", html)
    cleaned = bleach.clean(
        html,
        tags=tags,
        attributes={tag: attrs for tag, attrs in ALLOWED_ATTRIBUTES.items() if tag in tags},
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
    )
    if "a" in tags:
        linker = Linker(callbacks=[lambda attrs, new=False: _secure_link(attrs, new, remove_utm)],
                        parse_email=False)
        cleaned = linker.linkify(cleaned)
    return cleaned


def plain_text(html: Optional[str]) -> str:
    if not html:
        return ""
    return html_lib.unescape(bleach.clean(_FORBIDDEN_BLOCKS.sub("", html), tags=[], strip=True))


def count_characters(html: Optional[str]) -> int:
    return len(plain_text(html))


def truncate_html(html: str, max_length: int) -> str:
    text = plain_text(html)
    if len(text) <= max_length:
        return html
    return f"<p>{html_lib.escape(text[:max_length])}...</p>"


def validate_content(html: Optional[str], rules: Optional[ContentRules] = None) -> ContentCheck:
    rules = rules or ContentRules()
    html = html or ""
    text = plain_text(html)
    errors = []

    if len(text) < rules.min_length:
        errors.append(f"Content must be at least {rules.min_length} characters")
    if len(text) > rules.max_length:
        errors.append(f"Content cannot exceed {rules.max_length} characters")

    if len(_LINK_TAGS.findall(html)) > rules.max_links:
        errors.append(f"Maximum {rules.max_links} links allowed")

    images = _IMG_TAGS.findall(html)
    if len(images) > rules.max_images:
        errors.append(f"Maximum {rules.max_images} images allowed")
    for index, tag in enumerate(images, start=1):
        match = _ALT_ATTR.search(tag)
        alt = (match.group(2) if match.group(2) is not None else match.group(3)) if match else ""
        if not 3 <= len(alt) <= 120:
            errors.append(f"Image {index}: Alt text must be 3-120 characters")

    if _LONG_WORD.search(text):
        errors.append("Text contains too many consecutive characters without spaces")
    if _REPEATED.search(text):
        errors.append("Text contains too many repeated characters")

    return ContentCheck(is_valid=not errors, errors=errors, char_count=len(text))
