from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import BooleanField, HiddenField, StringField, SubmitField, TextAreaField
from wtforms.validators import Length, Optional, URL

from app.schemas.transport import MAX_FIELD_LENGTH, MAX_FRAGMENT_LENGTH
from app.services.transport import TransportEnvelope


class EditorForm(FlaskForm):
    """The authoring surface: markup plus preview metadata."""
    title = StringField(
        'Title',
        validators=[Optional(), Length(max=MAX_FIELD_LENGTH, message='Title is too long')],
        render_kw={'placeholder': 'Enter title', 'class': 'form-control'}
    )
    main_image = StringField(
        'Main Image URL',
        validators=[
            Optional(),
            URL(require_tld=False, message='Main image must be an absolute URL'),
            Length(max=MAX_FIELD_LENGTH, message='Main image URL is too long'),
        ],
        render_kw={'placeholder': 'Enter main image URL', 'class': 'form-control'}
    )
    description = TextAreaField(
        'Description',
        validators=[Optional(), Length(max=MAX_FIELD_LENGTH, message='Description is too long')],
        render_kw={'placeholder': 'Enter description', 'rows': 3, 'class': 'form-control'}
    )
    content = TextAreaField(
        'Content',
        validators=[Length(max=MAX_FRAGMENT_LENGTH, message='Content is too long')],
        render_kw={'rows': 16, 'class': 'form-control font-monospace', 'spellcheck': 'false'}
    )
    hide_edit_button = BooleanField('Hide edit button on the shared page')
    submit = SubmitField('View', render_kw={'class': 'btn btn-dark'})

    def fill(self, envelope: TransportEnvelope) -> None:
        self.title.data = envelope.title
        self.main_image.data = envelope.main_image
        self.description.data = envelope.description
        self.content.data = envelope.content
        self.hide_edit_button.data = envelope.hide_edit_button

    def to_envelope(self) -> TransportEnvelope:
        return TransportEnvelope(
            content=self.content.data or '',
            title=(self.title.data or '').strip(),
            description=self.description.data or '',
            main_image=(self.main_image.data or '').strip(),
            hide_edit_button=bool(self.hide_edit_button.data),
        )


class EditHandoffForm(FlaskForm):
    """Posted by the display surface's edit button with the page location."""
    fragment = HiddenField()
    query = HiddenField()
    submit = SubmitField('Edit this page', render_kw={'class': 'btn btn-dark'})
