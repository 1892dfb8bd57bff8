"""
Error Definitions Module.

All errors raised by the wafer map core derive from WaferMapError, which is a
ValueError.
"""


class WaferMapError(ValueError):
    """Base class for wafer map errors."""
    pass


class InvalidDimensionError(WaferMapError):
    """Raised when a chip width or height is not a positive, finite number."""
    pass


class DegenerateWaferError(WaferMapError):
    """Raised when the wafer diameter is not a positive, finite number."""
    pass


class WaferParameterError(WaferMapError):
    """Raised for an out-of-range flat angle or excluded radius."""
    pass


class MalformedImportError(WaferMapError):
    """Raised when a saved wafer map document does not have the expected shape."""
    pass
