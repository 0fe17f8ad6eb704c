"""Domain exceptions raised by the core services.

Every mutation validates its inputs before touching state, so catching one of
these means the session is exactly as it was before the call.
"""

from __future__ import annotations


class PhotoPickerError(Exception):
    """Base exception for all core errors."""


class NotFoundError(PhotoPickerError):
    """A referenced photo, group or face index does not exist in current state."""


class InvalidReference(PhotoPickerError):
    """The target exists but the operation would break a structural invariant."""


class EmptyInputError(PhotoPickerError):
    """Quality aggregation was asked to judge zero included faces in strict mode."""


class DetectionUnavailableError(PhotoPickerError):
    """The detection source could not produce results."""
