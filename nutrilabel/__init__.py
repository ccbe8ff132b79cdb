"""Nutrilabel - nutrition facts label extraction over Google Vision OCR."""

__version__ = "0.1.0"
