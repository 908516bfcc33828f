"""
Core package init for the staff attendance engine.

Makes the `staffattend` modules importable without requiring an editable install.
"""

__all__ = [
    "attendance",
    "config",
    "io_utils",
    "recognition",
    "roster",
    "types",
]
