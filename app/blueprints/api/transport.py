from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, url_for
from pydantic import BaseModel, ValidationError

from app.extensions import limiter
from app.schemas.transport import EnvelopeInput, LocationInput, SanitizeInput
from app.services.metadata import page_metadata
from app.services.transport import TransportSource, decode, encode
from app.utils.html_sanitizer import sanitize_html

bp = Blueprint("api", __name__, url_prefix="/api")


def _policy():
    return current_app.extensions["sanitization_policy"]


def _validation_error(error_message: str, e: ValidationError):
    # Never log submitted values; they hold page content
    current_app.logger.warning(f"{error_message}: {e.errors(include_input=False, include_url=False)}")
    return jsonify({
        "error": error_message,
        "details": [{"field": "/".join(map(str, err["loc"])), "message": err["msg"]}
                    for err in e.errors()]
    }), 400


def _parse(model: type[BaseModel]) -> BaseModel:
    return model.model_validate(request.get_json(silent=True) or {})


@bp.post("/render")
@limiter.limit("120 per minute")
def render_location():
    """Decode a display URL's fragment and query and return sanitized markup.

    Browsers never send the fragment on navigation; the display page posts it
    here so that decoding and sanitization run server-side. The request body
    is page content: it is processed in memory and never logged or stored.

    A SanitizationFailure propagates to the application handler (422).
    """
    try:
        payload = _parse(LocationInput)
    except ValidationError as e:
        return _validation_error("Invalid location", e)

    envelope = decode(TransportSource.from_parts(payload.fragment, payload.query))
    meta = page_metadata(envelope)
    return jsonify({
        "status": "ok",
        "html": sanitize_html(envelope.content, _policy()),
        "title": meta.title,
        "description": meta.description,
        "mainImage": meta.image,
        "hideEditButton": envelope.hide_edit_button,
    })


@bp.post("/decode")
@limiter.limit("60 per minute")
def decode_location():
    """Decode a fragment and query for loading into the editor (unsanitized)."""
    try:
        payload = _parse(LocationInput)
    except ValidationError as e:
        return _validation_error("Invalid location", e)

    envelope = decode(TransportSource.from_parts(payload.fragment, payload.query))
    return jsonify({"status": "ok", "envelope": envelope.to_dict()})


@bp.post("/sanitize")
@limiter.limit("300 per minute")
def sanitize():
    """Live preview for the editor."""
    try:
        payload = _parse(SanitizeInput)
    except ValidationError as e:
        return _validation_error("Invalid markup payload", e)

    return jsonify({"status": "ok", "html": sanitize_html(payload.html, _policy())})


@bp.post("/share")
@limiter.limit("60 per minute")
def share():
    """Build the shareable display URL for an envelope."""
    try:
        payload = _parse(EnvelopeInput)
    except ValidationError as e:
        return _validation_error("Invalid envelope", e)

    encoded = encode(payload.to_envelope())
    return jsonify({
        "status": "ok",
        "url": encoded.to_url(url_for("page.display")),
        "fragment": encoded.fragment,
        "query": encoded.query,
    })
