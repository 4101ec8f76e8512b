from __future__ import annotations

from flask import abort, jsonify, redirect, render_template, request, url_for

from app.extensions import limiter
from app.forms.editor import EditHandoffForm
from app.services.handoff import begin_edit
from app.services.metadata import page_metadata
from app.services.transport import TransportSource, decode, encode

from app.blueprints.page import bp, session_buffer


def _raw_query() -> str:
    return request.query_string.decode("utf-8", "replace")


@bp.get("/", endpoint="display")
@limiter.limit("120 per minute")
def display():
    """Display surface.

    Only the metadata is visible here; the content travels in the fragment
    and is rendered through /api/render by the page script.
    """
    envelope = decode(TransportSource.from_parts(query_string=_raw_query()))
    meta = page_metadata(envelope)
    if request.args.get("format") == "json":
        return jsonify({
            "status": "ok",
            "page": "view",
            "metadata": {
                "title": meta.title,
                "description": meta.description,
                "image": meta.image,
            },
            "hideEditButton": envelope.hide_edit_button,
        })
    return render_template(
        "view.html",
        meta=meta,
        hide_edit_button=envelope.hide_edit_button,
        form=EditHandoffForm(formdata=None),
    )


@bp.post("/handoff/edit", endpoint="handoff_edit")
@limiter.limit("30 per minute")
def handoff_edit():
    """The "edit" action: stash the displayed page and move to the editor."""
    form = EditHandoffForm()
    if not form.validate_on_submit():
        abort(400)
    envelope = decode(TransportSource.from_parts(form.fragment.data or "", form.query.data or ""))
    route = begin_edit(envelope, session_buffer(), url_for("page.editor"))
    # Buffered values win on arrival; the URL carries whatever the cookie could not hold
    return redirect(encode(envelope).to_url(route), code=303)
