"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: UTC receipt timestamps and their epoch/ISO renderings
"""

from core.utils.time import to_epoch_ms, to_iso, utc_now

__all__ = ["to_epoch_ms", "to_iso", "utc_now"]
