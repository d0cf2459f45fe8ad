"""Autobiography interview and manuscript editing toolkit."""

__version__ = "0.3.0"
