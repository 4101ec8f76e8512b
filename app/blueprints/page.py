from __future__ import annotations

from flask import Blueprint, current_app, session

from app.services.transport import SessionBuffer
from app.utils.html_sanitizer import SanitizationPolicy

bp = Blueprint("page", __name__)


def app_policy() -> SanitizationPolicy:
    return current_app.extensions["sanitization_policy"]


def session_buffer() -> SessionBuffer:
    """The visitor's one-shot handoff buffer."""
    return SessionBuffer(session, max_bytes=current_app.config.get("HANDOFF_MAX_BYTES"))


import app.blueprints.view.page  # noqa: E402,F401
