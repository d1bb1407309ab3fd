"""
Shared type definitions for schemas.

Centralizes the foundation models used across the
session and operations schemas.

Layering:
- This module provides FOUNDATION types (BaseStrictModel, PermissiveModel)
- Domain packages (session/, operations/) import from here
- Domain packages may define their own StrictModel that inherits from BaseStrictModel
"""

from __future__ import annotations

import pydantic

# ==============================================================================
# Base Strict Model (Foundation)
# ==============================================================================


class BaseStrictModel(pydantic.BaseModel):
    """
    Foundation strict model - domain packages inherit from this.

    Uses extra='forbid' to reject unknown fields. Used for values this
    package produces itself (stream items, stats, patch operations), where
    an unknown field can only mean a programming error.
    """

    model_config = pydantic.ConfigDict(
        extra='forbid',  # Reject unknown fields (fail-fast)
        strict=True,  # Strict type coercion
        frozen=True,  # Immutable after creation
    )


# ==============================================================================
# Permissive Model (Foundation)
# ==============================================================================


class PermissiveModel(pydantic.BaseModel):
    """
    Foundation permissive model for records read from session files.

    Symmetry with BaseStrictModel:
    - BaseStrictModel: extra='forbid' (rejects unknown fields)
    - PermissiveModel: extra='allow' (accepts unknown fields)

    Session metadata and timeline events keep every key the writer put on
    the line. Known fields are still strictly typed, so a Message whose
    content is a list of blocks does not validate until it is flattened.
    """

    model_config = pydantic.ConfigDict(
        extra='allow',  # Accept unknown fields (passthrough)
        strict=True,  # Strict type coercion for known fields
        frozen=True,  # Immutable after creation
    )

    def get_extra_fields(self) -> dict[str, object]:
        """Get extra fields captured by this permissive model.

        Returns only the unknown fields, not defined model fields.
        """
        return dict(self.__pydantic_extra__) if self.__pydantic_extra__ else {}
