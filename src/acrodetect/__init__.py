"""Detect form fields in flat PDFs and turn them into fillable AcroForm widgets."""

__version__ = "0.1.0"
