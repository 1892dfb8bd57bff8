"""
Enum Definitions Module.

This module contains Enumeration classes for defining constant sets of values,
such as UI view modes or export formats. Using enums instead of raw strings
improves code readability and reduces the risk of typos.
"""
from enum import Enum

class ViewMode(Enum):
    """Enumeration for the different views in the UI."""
    WAFER_MAP = "Wafer Map"
    CHIP_TABLE = "Chip Table"
    DOCUMENTATION = "Documentation"

    @classmethod
    def values(cls) -> list[str]:
        """Returns the string values of all enum members."""
        return [item.value for item in cls]

class ExportFormat(Enum):
    """Enumeration for the downloadable export formats."""
    PNG = "png"
    SVG = "svg"
    JSON = "json"
    EXCEL = "xlsx"

    @classmethod
    def values(cls) -> list[str]:
        """Returns the string values of all enum members."""
        return [item.value for item in cls]

    @property
    def mime(self) -> str:
        """Returns the MIME type used for the download button."""
        if self == ExportFormat.PNG: return "image/png"
        if self == ExportFormat.SVG: return "image/svg+xml"
        if self == ExportFormat.JSON: return "application/json"
        return "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    @property
    def is_image(self) -> bool:
        return self in [ExportFormat.PNG, ExportFormat.SVG]
