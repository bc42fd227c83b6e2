"""Visitor kiosk shared library."""

__version__ = "0.1.0"
