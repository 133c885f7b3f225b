"""Study Desk: a local web app for working through course PDFs week by week."""

__version__ = "0.1.0"
