"""
Exception types for photosheet.

Every error carries a short message, optional structured details and a list of
suggestions so callers (CLI, a GUI shell) can show something actionable
instead of a raw code.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class PhotoSheetError(Exception):
    """Base exception for all photosheet errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.suggestions = suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "suggestions": self.suggestions,
        }

    def user_message(self) -> str:
        if not self.suggestions:
            return self.message
        return f"{self.message} ({'; '.join(self.suggestions)})"


class InvalidInputError(PhotoSheetError, ValueError):
    """Zero-sized image, non-positive spec dimensions, malformed face box."""


class UnknownSpecError(InvalidInputError):
    """Raised when a photo or sheet identifier is not in the static tables."""

    def __init__(self, kind: str, spec_id: str, known: List[str]):
        super().__init__(
            f"Unknown {kind} '{spec_id}'.",
            details={"kind": kind, "id": spec_id, "known": known},
            suggestions=[f"Use one of: {', '.join(known)}"],
        )


class NoFaceDetectedError(PhotoSheetError):
    """Recoverable: the viewport stays where it was and the user positions manually."""

    def __init__(self, message: str = "No face detected.", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            details=details,
            suggestions=[
                "Position the photo manually",
                "Try a clearer, front-facing photo with good lighting",
            ],
        )


class RenderTargetUnavailableError(PhotoSheetError):
    """A drawing surface could not be allocated; no partial artifact is returned."""
