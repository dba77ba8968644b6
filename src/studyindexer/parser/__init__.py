"""DDI record parsing."""

from .record import ParsedRecord, RecordParser
from .xpaths import DDI_2_5_XPATHS, NESSTAR_XPATHS, XPaths, xpaths_for_prefix

__all__ = [
    "ParsedRecord",
    "RecordParser",
    "XPaths",
    "DDI_2_5_XPATHS",
    "NESSTAR_XPATHS",
    "xpaths_for_prefix",
]
