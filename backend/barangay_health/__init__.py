"""Barangay Health: maternal record keeping for barangay health workers."""

__version__ = "1.0.0"
