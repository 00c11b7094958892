"""Exceptions raised by the watercolor engine."""


class WatercolorEngineError(Exception):
    """Base class for engine errors."""
    pass


class InvalidTextureDimensions(WatercolorEngineError, ValueError):
    """Paper texture buffer length does not match its declared dimensions."""

    def __init__(self, length: int, width: int, height: int):
        self.length = length
        self.width = width
        self.height = height
        super().__init__(
            f"texture buffer of {length} bytes does not match {width}x{height} "
            f"with 1 (luminance) or 4 (RGBA) channels"
        )


class InvalidGridDimensions(WatercolorEngineError, ValueError):
    """Canvas grid extent must be positive in both directions."""
    pass
