"""Exception hierarchy shared by the services and the web layer."""

from __future__ import annotations


class StudyDeskError(RuntimeError):
    """Base class for application errors."""


class BootstrapError(StudyDeskError):
    """Raised when initialization cannot be completed."""


class StaleStateError(StudyDeskError):
    """Raised when a state write was based on an outdated version."""

    def __init__(self, expected: int, current: int) -> None:
        super().__init__(
            f"State version {expected} is stale; the stored version is {current}"
        )
        self.expected = expected
        self.current = current


class PdfInspectionError(StudyDeskError):
    """Raised when a PDF document cannot be opened or inspected."""


class PdfDependencyError(PdfInspectionError):
    """Raised when PyMuPDF is not available."""


__all__ = [
    "BootstrapError",
    "PdfDependencyError",
    "PdfInspectionError",
    "StaleStateError",
    "StudyDeskError",
]
