"""
Shared Pydantic base model for strict validation.

This module re-exports BaseStrictModel as StrictModel for the operations/ package.
"""

from __future__ import annotations

from session_timeline.schemas.types import BaseStrictModel


class StrictModel(BaseStrictModel):
    """Operations-layer strict model.

    Inherits from BaseStrictModel (extra='forbid', strict=True, frozen=True).
    Used by session_timeline/schemas/operations/ package.
    """

    pass
