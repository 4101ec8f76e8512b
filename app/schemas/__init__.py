from __future__ import annotations

# Re-export common schema classes for convenient imports
from .transport import EnvelopeInput, LocationInput, SanitizeInput  # noqa: F401

__all__ = [
    "EnvelopeInput",
    "LocationInput",
    "SanitizeInput",
]
