"""Delegate bookkeeping, delegate files and CNI result-cache gateway editing."""

__version__ = "0.1.0"
__all__ = ["delegate", "gwcache", "scratch"]