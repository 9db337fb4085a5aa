"""
menubar_pup runtime package.

Holds process-wide helpers for the tray application; the indicator and
reminder logic lives in ``core``.
"""

__all__ = [
    "logger",
]
