"""Face matching: descriptor math, live-scan resolver, enrollment conflict detection."""

__all__ = [
    "conflict",
    "descriptors",
    "enrollment",
    "extractor",
    "matcher",
    "quality",
]
