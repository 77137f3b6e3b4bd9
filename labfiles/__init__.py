"""Labfiles: lab file records, directory sync, and notes."""

__version__ = "0.1.0"
