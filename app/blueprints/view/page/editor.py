from __future__ import annotations

from flask import redirect, render_template, request, url_for
from markupsafe import Markup

from app.extensions import limiter
from app.forms.editor import EditorForm
from app.services.handoff import arrive, begin_view
from app.services.metadata import page_metadata
from app.services.transport import TransportSource
from app.utils.html_sanitizer import sanitize_html

from app.blueprints.page import app_policy, bp, session_buffer


@bp.get("/edit", endpoint="editor")
@limiter.limit("60 per minute")
def editor():
    """Authoring surface.

    Arriving from the display surface, the handoff buffer holds the page and
    is consumed here. A shared /edit link has no buffer, so metadata comes
    from the query and content from the fragment (read by the page script).
    """
    source = TransportSource.from_parts(
        query_string=request.query_string.decode("utf-8", "replace"),
        buffer=session_buffer(),
    )
    envelope = arrive(source)
    form = EditorForm(formdata=None)
    form.fill(envelope)
    return render_template(
        "edit.html",
        form=form,
        meta=page_metadata(envelope, editing=True),
        preview=Markup(sanitize_html(envelope.content, app_policy())),
        needs_fragment=not envelope.content,
    )


@bp.post("/edit", endpoint="editor_submit")
@limiter.limit("60 per minute")
def editor_submit():
    """The "view" action: move to the shareable display URL."""
    form = EditorForm()
    if not form.validate_on_submit():
        envelope = form.to_envelope()
        return render_template(
            "edit.html",
            form=form,
            meta=page_metadata(envelope, editing=True),
            preview=Markup(sanitize_html(envelope.content, app_policy())),
            needs_fragment=False,
        ), 400
    return redirect(begin_view(form.to_envelope(), url_for("page.display")), code=303)
