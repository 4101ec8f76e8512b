from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.services.transport import TransportEnvelope

# Generous upper bounds; the request body limit applies first
MAX_FRAGMENT_LENGTH = 2_000_000
MAX_QUERY_LENGTH = 64_000
MAX_FIELD_LENGTH = 4_000


class LocationInput(BaseModel):
    """The parts of a page URL a browser can read but never sends."""

    fragment: str = Field(default="", max_length=MAX_FRAGMENT_LENGTH)
    query: str = Field(default="", max_length=MAX_QUERY_LENGTH)

    @field_validator("fragment")
    @classmethod
    def strip_hash(cls, v: str) -> str:
        return v[1:] if v.startswith("#") else v

    @field_validator("query")
    @classmethod
    def strip_question_mark(cls, v: str) -> str:
        return v[1:] if v.startswith("?") else v


class SanitizeInput(BaseModel):
    html: str = Field(default="", max_length=MAX_FRAGMENT_LENGTH)


class EnvelopeInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(default="", max_length=MAX_FRAGMENT_LENGTH)
    title: str = Field(default="", max_length=MAX_FIELD_LENGTH)
    description: str = Field(default="", max_length=MAX_FIELD_LENGTH)
    main_image: str = Field(default="", max_length=MAX_FIELD_LENGTH, alias="mainImage")
    hide_edit_button: bool = Field(default=False, alias="hideEditButton")

    def to_envelope(self) -> TransportEnvelope:
        return TransportEnvelope(
            content=self.content,
            title=self.title,
            description=self.description,
            main_image=self.main_image,
            hide_edit_button=self.hide_edit_button,
        )
