"""Duplicate detection and verification bookkeeping for research outputs."""

__version__ = "0.1.0"
