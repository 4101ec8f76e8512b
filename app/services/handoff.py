"""Edit/view handoff between the authoring and the display surface.

Displaying -> Authoring goes through the one-shot buffer (lossless, same
browser only). Authoring -> Displaying produces a shareable URL and never
touches a buffer, so a shared link alone rebuilds the page.
"""
from __future__ import annotations

from enum import Enum

import structlog

from app.services.transport import (
    OneShotBuffer,
    TransportEnvelope,
    TransportSource,
    decode,
    encode,
    stash,
)

logger = structlog.get_logger(__name__)

DEFAULT_VIEW_ROUTE = "/"
DEFAULT_EDIT_ROUTE = "/edit"


class Surface(str, Enum):
    AUTHORING = "authoring"
    DISPLAYING = "displaying"


def begin_edit(
    envelope: TransportEnvelope,
    buffer: OneShotBuffer,
    edit_route: str = DEFAULT_EDIT_ROUTE,
) -> str:
    """Stash ``envelope`` for the editor and return where to navigate."""
    stash(envelope, buffer)
    logger.info(
        "handoff",
        source=Surface.DISPLAYING.value,
        target=Surface.AUTHORING.value,
        content_length=len(envelope.content),
    )
    return edit_route


def begin_view(envelope: TransportEnvelope, view_route: str = DEFAULT_VIEW_ROUTE) -> str:
    """Return the shareable display URL for ``envelope``."""
    url = encode(envelope).to_url(view_route)
    logger.info(
        "handoff",
        source=Surface.AUTHORING.value,
        target=Surface.DISPLAYING.value,
        content_length=len(envelope.content),
    )
    return url


def arrive(source: TransportSource) -> TransportEnvelope:
    """Read the envelope on arrival at a surface, consuming buffered entries."""
    return decode(source)


def sync_content(current: str, fragment: str) -> str | None:
    """Return the fragment's content if it differs from ``current``, else None.

    Reacting only to real changes keeps "content changed -> write fragment"
    and "fragment changed -> update content" from feeding each other.
    """
    content = decode(TransportSource.from_parts(fragment=fragment)).content
    if content == current:
        return None
    return content
