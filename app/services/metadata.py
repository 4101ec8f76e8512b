from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from app.services.transport import TransportEnvelope

EDIT_TITLE_PREFIX = "Edit: "


@dataclass(frozen=True)
class PageMetadata:
    title: str = ""
    description: str = ""
    image: str = ""


def _web_image(url: str) -> str:
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return ""
    if parts.scheme.lower() in ("http", "https") and parts.netloc:
        return url.strip()
    return ""


def page_metadata(envelope: TransportEnvelope, editing: bool = False) -> PageMetadata:
    """Preview metadata (title, description, OpenGraph image) for a page."""
    title = envelope.title
    if editing and title:
        title = EDIT_TITLE_PREFIX + title
    return PageMetadata(
        title=title,
        description=envelope.description,
        image=_web_image(envelope.main_image),
    )
