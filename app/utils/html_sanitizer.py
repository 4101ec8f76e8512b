"""
HTML sanitization utilities using bleach for secure content rendering.
Provides DOMPurify-equivalent functionality for shared pages: a declarative
policy is compiled into a bleach Cleaner on every call, so the result is a
pure function of (markup, policy).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit

import bleach
import structlog
from bleach.css_sanitizer import CSSSanitizer
from bleach.html5lib_shim import Filter

logger = structlog.get_logger(__name__)


# Safe baseline of tags, extended per policy
ALLOWED_TAGS = frozenset([
    # Text formatting
    'strong', 'b', 'em', 'i', 'u', 's', 'strike', 'mark', 'small', 'sup', 'sub',
    'del', 'ins', 'abbr',
    # Links
    'a',
    # Lists
    'ul', 'ol', 'li',
    # Line breaks, paragraphs and headings
    'br', 'hr', 'p', 'div', 'span',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
    # Code
    'code', 'pre',
    # Quotes
    'blockquote', 'cite',
    # Tables
    'table', 'thead', 'tbody', 'tfoot', 'tr', 'th', 'td', 'caption',
    # Figures
    'figure', 'figcaption',
])

# Safe baseline of attributes, allowed on any retained tag
ALLOWED_ATTRIBUTES = frozenset([
    'class', 'dir', 'lang', 'href', 'rel', 'start', 'colspan', 'rowspan', 'cite',
])

# Elements removed together with everything inside them
DROPPED_CONTENT_TAGS = frozenset([
    'script', 'style', 'noscript', 'template', 'xmp', 'noembed', 'noframes',
])

# Elements whose children are never rendered when the element is supported
CHILDLESS_TAGS = frozenset(['iframe'])

# Attributes whose value is a URI
URI_ATTRIBUTES = frozenset([
    'href', 'src', 'cite', 'action', 'formaction', 'poster', 'background', 'longdesc',
])

ALLOWED_PROTOCOLS = ['http', 'https']

# Characters browsers ignore when resolving a URI attribute
_URI_IGNORED_CHARS = re.compile(r"[\x00-\x20\xa0\u1680\u180e\u2000-\u2029\u205f\u3000]")

DEFAULT_URI_PATTERN = re.compile(r'^(https?:)?//', re.IGNORECASE)


class SanitizationFailure(Exception):
    """Raised when markup cannot be processed at all.

    Callers must render nothing (or a generic error) and never fall back to
    the raw input.
    """


def _names(values: Iterable[str] | str) -> frozenset[str]:
    if isinstance(values, str):
        values = values.split(',')
    return frozenset(v.strip().lower() for v in values if v and v.strip())


@dataclass(frozen=True)
class SanitizationPolicy:
    """Declarative sanitization policy.

    The policy is the single source of truth for what survives sanitization,
    on top of the fixed safe baseline (ALLOWED_TAGS / ALLOWED_ATTRIBUTES).
    """

    allowed_tags_extra: frozenset[str] = frozenset(['iframe', 'img'])
    allowed_attributes_extra: frozenset[str] = frozenset([
        'src', 'width', 'height', 'frameborder', 'allow', 'allowfullscreen',
        'alt', 'title', 'style',
    ])
    forbidden_attributes: frozenset[str] = frozenset(['onerror', 'onload', 'onclick'])
    allowed_uri_pattern: re.Pattern[str] = DEFAULT_URI_PATTERN
    iframe_domain_allowlist: tuple[str, ...] = ('www.youtube.com', 'player.vimeo.com')

    def __post_init__(self) -> None:
        object.__setattr__(self, 'allowed_tags_extra', _names(self.allowed_tags_extra))
        object.__setattr__(self, 'allowed_attributes_extra', _names(self.allowed_attributes_extra))
        object.__setattr__(self, 'forbidden_attributes', _names(self.forbidden_attributes))
        if isinstance(self.allowed_uri_pattern, str):
            object.__setattr__(
                self, 'allowed_uri_pattern', re.compile(self.allowed_uri_pattern, re.IGNORECASE)
            )
        domains = self.iframe_domain_allowlist
        if isinstance(domains, str):
            domains = domains.split(',')
        # Keep configured order, drop duplicates
        ordered = dict.fromkeys(d.strip().lower() for d in domains if d and d.strip())
        object.__setattr__(self, 'iframe_domain_allowlist', tuple(ordered))

    @property
    def tags(self) -> frozenset[str]:
        """Tags retained in the output."""
        return (ALLOWED_TAGS | self.allowed_tags_extra) - DROPPED_CONTENT_TAGS

    @property
    def attributes(self) -> frozenset[str]:
        """Attributes retained on any tag, before value checks."""
        allowed = (ALLOWED_ATTRIBUTES | self.allowed_attributes_extra) - self.forbidden_attributes
        return frozenset(a for a in allowed if not a.startswith('on'))

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'SanitizationPolicy':
        """Build a policy from SANITIZER_* application settings.

        Missing or empty settings keep the default for that field.
        """
        overrides: dict[str, Any] = {}
        keys = {
            'SANITIZER_ALLOWED_TAGS_EXTRA': 'allowed_tags_extra',
            'SANITIZER_ALLOWED_ATTRIBUTES_EXTRA': 'allowed_attributes_extra',
            'SANITIZER_FORBIDDEN_ATTRIBUTES': 'forbidden_attributes',
            'SANITIZER_ALLOWED_URI_PATTERN': 'allowed_uri_pattern',
            'SANITIZER_IFRAME_DOMAINS': 'iframe_domain_allowlist',
        }
        for key, attr in keys.items():
            value = config.get(key)
            if value:
                overrides[attr] = value
        return cls(**overrides)


DEFAULT_POLICY = SanitizationPolicy()


class DropContentFilter(Filter):
    """Remove script-like elements with their content, and iframe fallback content."""

    def __iter__(self):
        dropped_depth = 0
        childless: list[str] = []
        for token in Filter.__iter__(self):
            token_type = token['type']
            name = token.get('name')
            if token_type == 'StartTag' and name in DROPPED_CONTENT_TAGS:
                dropped_depth += 1
                continue
            if token_type == 'EndTag' and name in DROPPED_CONTENT_TAGS:
                dropped_depth = max(dropped_depth - 1, 0)
                continue
            if dropped_depth:
                continue
            if childless:
                if token_type == 'EndTag' and name == childless[-1]:
                    childless.pop()
                    yield token
                continue
            if token_type == 'StartTag' and name in CHILDLESS_TAGS:
                childless.append(name)
            yield token


def _normalize_uri(value: str) -> str:
    return _URI_IGNORED_CHARS.sub('', value)


def _is_web_url(value: str) -> bool:
    """Return True for a syntactically valid absolute http(s) URL."""
    if '\\' in value:
        return False
    try:
        parts = urlsplit(value)
        host = parts.hostname
    except ValueError:
        return False
    return parts.scheme.lower() in ('http', 'https') and bool(host)


def _iframe_host_allowed(value: str, allowlist: tuple[str, ...]) -> bool:
    if not value or '\\' in value:
        return False
    try:
        host = urlsplit(value).hostname
    except ValueError:
        return False
    return bool(host) and host in allowlist


def _attribute_filter(policy: SanitizationPolicy):
    """Compile the policy into a bleach attribute callable."""
    allowed = policy.attributes

    def allow(tag: str, name: str, value: str) -> bool:
        name = name.lower()
        if name.startswith('on') or name not in allowed:
            return False
        if name not in URI_ATTRIBUTES:
            return True
        uri = _normalize_uri(value)
        if not policy.allowed_uri_pattern.search(uri):
            return False
        if tag == 'iframe' and name == 'src':
            if not _iframe_host_allowed(uri, policy.iframe_domain_allowlist):
                logger.info("iframe_src_stripped", src_length=len(value))
                return False
        if tag == 'img' and name == 'src':
            return _is_web_url(uri)
        return True

    return allow


def build_cleaner(policy: SanitizationPolicy = DEFAULT_POLICY) -> bleach.sanitizer.Cleaner:
    """Create a bleach Cleaner for ``policy``.

    Cleaner instances are not thread-safe, so one is built per call.
    """
    return bleach.sanitizer.Cleaner(
        # Dropped-content tags must reach the filter as elements to be removed whole
        tags=policy.tags | DROPPED_CONTENT_TAGS,
        attributes=_attribute_filter(policy),
        protocols=ALLOWED_PROTOCOLS,
        strip=True,  # Strip disallowed tags instead of escaping
        strip_comments=True,  # Remove HTML comments
        css_sanitizer=CSSSanitizer(),
        filters=[DropContentFilter],
    )


def sanitize_html(html_content: str | None, policy: SanitizationPolicy = DEFAULT_POLICY) -> str:
    """
    Sanitize HTML content to prevent XSS attacks while allowing safe formatting
    and allowlisted embeds.

    Malformed markup is recovered by the HTML5 parser rather than rejected.
    Sanitizing the output again under the same policy returns it unchanged.

    Args:
        html_content: Raw, untrusted HTML content
        policy: Policy deciding which tags, attributes and sources survive

    Returns:
        Sanitized HTML content safe for rendering

    Raises:
        SanitizationFailure: If the content cannot be processed at all
    """
    if html_content is None or html_content == "":
        return ""
    if not isinstance(html_content, str):
        raise SanitizationFailure(f"cannot sanitize {type(html_content).__name__}")

    try:
        return build_cleaner(policy).clean(html_content)
    except Exception as exc:
        logger.error("sanitization_failed", error=type(exc).__name__, length=len(html_content))
        raise SanitizationFailure("content could not be sanitized") from exc


def is_safe_html(html_content: str | None, policy: SanitizationPolicy = DEFAULT_POLICY) -> bool:
    """
    Check if HTML content is already safe under ``policy``.

    Args:
        html_content: HTML content to check
        policy: Policy to check against

    Returns:
        True if sanitizing would not change the content
    """
    if not html_content:
        return True

    try:
        sanitized = sanitize_html(html_content, policy)
    except SanitizationFailure:
        return False
    return sanitized == html_content
