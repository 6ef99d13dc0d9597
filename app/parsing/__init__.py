"""
app/parsing package marker.
"""

from app.parsing.workbook_parser import SourceFormat, WorkbookParser, detect_delimiter

__all__ = [
    "SourceFormat",
    "WorkbookParser",
    "detect_delimiter",
]
