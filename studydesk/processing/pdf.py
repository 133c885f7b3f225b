"""PDF inspection helpers backed by PyMuPDF."""

from __future__ import annotations

from pathlib import Path
from typing import Union

from ..errors import PdfDependencyError, PdfInspectionError


def get_pdf_page_count(source: Union[Path, bytes]) -> int:
    """Return the number of pages contained in a PDF document."""

    try:
        import fitz  # type: ignore
    except ImportError as exc:  # pragma: no cover - runtime check
        raise PdfDependencyError("PyMuPDF (fitz) is not installed") from exc

    document = None
    try:
        if isinstance(source, Path):
            document = fitz.open(source)
        else:
            document = fitz.open(stream=source, filetype="pdf")
        return int(document.page_count)
    except Exception as error:
        raise PdfInspectionError("Unable to inspect PDF document") from error
    finally:
        if document is not None:
            document.close()


__all__ = ["get_pdf_page_count"]
