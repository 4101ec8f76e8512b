from __future__ import annotations

# Re-export common forms for convenience
from .editor import EditHandoffForm, EditorForm  # noqa: F401

__all__ = [
    "EditorForm",
    "EditHandoffForm",
]
