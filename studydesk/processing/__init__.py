"""Document processing backends."""

from .pdf import get_pdf_page_count

__all__ = ["get_pdf_page_count"]
