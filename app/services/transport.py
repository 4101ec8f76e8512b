"""Carry a page (markup plus preview metadata) across navigations.

Content travels in the URL fragment (``#content=...``), metadata in the
query string, and a same-browser edit handoff additionally goes through a
one-shot buffer that is erased as soon as it is read.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, MutableMapping, Protocol
from urllib.parse import quote, unquote, urlsplit

import structlog

logger = structlog.get_logger(__name__)

CONTENT_PARAM = "content"
HIDE_EDIT_BUTTON_PARAM = "hideEditButton"

# (envelope attribute, wire name)
METADATA_FIELDS: tuple[tuple[str, str], ...] = (
    ("title", "title"),
    ("description", "description"),
    ("main_image", "mainImage"),
)

# encodeURIComponent leaves these unescaped besides alphanumerics and "-_."
_ENCODE_SAFE = "!~*'()"
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class TransportDecodeFailure(ValueError):
    """A transported value is not validly percent-encoded UTF-8."""


def percent_encode(value: str) -> str:
    """Percent-encode ``value`` exactly like JavaScript's encodeURIComponent."""
    return quote(value, safe=_ENCODE_SAFE)


def percent_decode(value: str) -> str:
    """Reverse :func:`percent_encode`.

    Raises:
        TransportDecodeFailure: On a malformed escape or invalid UTF-8 bytes.
    """
    if _BAD_ESCAPE.search(value):
        raise TransportDecodeFailure("malformed percent escape")
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError as exc:
        raise TransportDecodeFailure("percent-encoded bytes are not valid UTF-8") from exc


def buffer_key(wire_name: str) -> str:
    """One-shot buffer key for a transported field."""
    if wire_name == CONTENT_PARAM:
        return CONTENT_PARAM
    return f"meta_{wire_name}"


HANDOFF_KEYS: tuple[str, ...] = tuple(
    buffer_key(name) for name in (CONTENT_PARAM, *(wire for _, wire in METADATA_FIELDS), HIDE_EDIT_BUTTON_PARAM)
)


class OneShotBuffer(Protocol):
    """Key-value slot whose entries can be read only once."""

    def put(self, key: str, value: str) -> None: ...

    def take(self, key: str) -> str | None: ...


class MemoryBuffer:
    """Dict-backed one-shot buffer."""

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})

    def put(self, key: str, value: str) -> None:
        self._entries[key] = value

    def take(self, key: str) -> str | None:
        return self._entries.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class SessionBuffer:
    """One-shot buffer stored in a Flask session.

    The default Flask session is a signed cookie and browsers drop cookies
    over roughly 4KB, so all ``handoff_*`` entries together are held under
    ``max_bytes`` of serialized JSON. A value that does not fit is refused
    and the reader falls back to the fragment or query.
    """

    PREFIX = "handoff_"

    def __init__(self, session: MutableMapping[str, Any], max_bytes: int | None = None) -> None:
        self._session = session
        self.max_bytes = max_bytes

    @staticmethod
    def _stored_size(key: str, value: Any) -> int:
        # Session cookies hold JSON, so non-ASCII text counts as its escapes
        return len(json.dumps(key)) + len(json.dumps(value)) + 2

    def used_bytes(self) -> int:
        """Serialized size of every handoff entry currently in the session."""
        return sum(
            self._stored_size(key, value)
            for key, value in self._session.items()
            if key.startswith(self.PREFIX)
        )

    def put(self, key: str, value: str) -> None:
        name = self.PREFIX + key
        self._session.pop(name, None)
        if self.max_bytes is not None:
            size = self._stored_size(name, value)
            used = self.used_bytes()
            if used + size > self.max_bytes:
                logger.warning("handoff_buffer_full", key=key, size=size, used=used, limit=self.max_bytes)
                return
        self._session[name] = value

    def take(self, key: str) -> str | None:
        value = self._session.pop(self.PREFIX + key, None)
        return value if isinstance(value, str) else None


@dataclass(frozen=True)
class TransportEnvelope:
    """Fields carried between the authoring and the display surface."""

    content: str = ""
    title: str = ""
    description: str = ""
    main_image: str = ""
    hide_edit_button: bool = False

    def metadata(self) -> dict[str, str]:
        """Non-empty metadata keyed by wire name."""
        values = {wire: getattr(self, attr) for attr, wire in METADATA_FIELDS}
        return {wire: value for wire, value in values.items() if value}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {CONTENT_PARAM: self.content}
        data.update({wire: getattr(self, attr) for attr, wire in METADATA_FIELDS})
        data[HIDE_EDIT_BUTTON_PARAM] = self.hide_edit_button
        return data


@dataclass(frozen=True)
class EncodedEnvelope:
    fragment: str = ""
    query: dict[str, str] = field(default_factory=dict)

    @property
    def query_string(self) -> str:
        return "&".join(f"{name}={value}" for name, value in self.query.items())

    def to_url(self, route: str = "/") -> str:
        url = route
        if self.query:
            url += "?" + self.query_string
        if self.fragment:
            url += "#" + self.fragment
        return url


def _split_pairs(raw: str) -> dict[str, str]:
    """Split ``a=1&b=2`` without decoding values; the first occurrence wins."""
    pairs: dict[str, str] = {}
    for part in raw.split("&"):
        name, sep, value = part.partition("=")
        if not name:
            continue
        pairs.setdefault(unquote(name), value)
    return pairs


@dataclass(frozen=True)
class TransportSource:
    """Every channel a surface can read transported fields from.

    ``fragment`` and ``query`` values are still percent-encoded, exactly as
    they appear in the URL.
    """

    fragment: str = ""
    query: Mapping[str, str] = field(default_factory=dict)
    buffer: OneShotBuffer | None = None

    @classmethod
    def from_parts(
        cls, fragment: str = "", query_string: str = "", buffer: OneShotBuffer | None = None
    ) -> "TransportSource":
        return cls(
            fragment=(fragment or "").lstrip("#"),
            query=_split_pairs((query_string or "").lstrip("?")),
            buffer=buffer,
        )

    @classmethod
    def from_url(cls, url: str, buffer: OneShotBuffer | None = None) -> "TransportSource":
        parts = urlsplit(url)
        return cls.from_parts(parts.fragment, parts.query, buffer)


def encode(envelope: TransportEnvelope) -> EncodedEnvelope:
    """Serialize ``envelope`` into a URL fragment and query parameters.

    Empty content omits the fragment entirely and empty metadata fields are
    left out of the query, so merging never clobbers an existing value.
    """
    fragment = f"{CONTENT_PARAM}={percent_encode(envelope.content)}" if envelope.content else ""
    query = {wire: percent_encode(value) for wire, value in envelope.metadata().items()}
    if envelope.hide_edit_button:
        query[HIDE_EDIT_BUTTON_PARAM] = "true"
    return EncodedEnvelope(fragment=fragment, query=query)


def _take(buffer: OneShotBuffer | None, key: str) -> str | None:
    if buffer is None:
        return None
    # Taking always erases the entry; an empty value counts as absent
    value = buffer.take(key)
    return value or None


def _decode_field(name: str, raw: str | None) -> str:
    if not raw:
        return ""
    try:
        return percent_decode(raw)
    except TransportDecodeFailure as exc:
        logger.warning("transport_decode_failed", field=name, error=str(exc))
        return ""


def stash(envelope: TransportEnvelope, buffer: OneShotBuffer) -> None:
    """Write ``envelope`` into a one-shot buffer, replacing any earlier stash.

    Stale entries from a handoff that was never consumed are erased first,
    so empty fields cannot be filled from an older page. Small fields go in
    before the content, which is the one refused when space runs out.
    """
    for key in HANDOFF_KEYS:
        buffer.take(key)
    if envelope.hide_edit_button:
        buffer.put(buffer_key(HIDE_EDIT_BUTTON_PARAM), "true")
    for wire, value in envelope.metadata().items():
        buffer.put(buffer_key(wire), value)
    buffer.put(buffer_key(CONTENT_PARAM), envelope.content)


def decode(source: TransportSource) -> TransportEnvelope:
    """Recover a transported envelope from ``source``.

    Each field is looked up independently: the one-shot buffer wins (and is
    consumed), then the fragment for content or the query for metadata. A
    field that fails to decode becomes ``""`` without affecting the others.
    """
    content = _take(source.buffer, buffer_key(CONTENT_PARAM))
    if content is None:
        content = _decode_field(CONTENT_PARAM, _split_pairs(source.fragment.lstrip("#")).get(CONTENT_PARAM))

    values: dict[str, Any] = {}
    for attr, wire in METADATA_FIELDS:
        value = _take(source.buffer, buffer_key(wire))
        if value is None:
            value = _decode_field(wire, source.query.get(wire))
        values[attr] = value

    hide = _take(source.buffer, buffer_key(HIDE_EDIT_BUTTON_PARAM))
    if hide is None:
        hide = _decode_field(HIDE_EDIT_BUTTON_PARAM, source.query.get(HIDE_EDIT_BUTTON_PARAM))

    return TransportEnvelope(content=content, hide_edit_button=hide == "true", **values)
