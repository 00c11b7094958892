"""
Watercolor Engine.

Copyright (c) 2026 Shuoqi Chen
SPDX-License-Identifier: MIT OR Apache-2.0
"""
from .engine import WatercolorEngine
from .configs import BrushRanges, PhysicsParams, PigmentProps
from .errors import InvalidGridDimensions, InvalidTextureDimensions, WatercolorEngineError
from .stroke import BrushMode, BrushStroke, StrokeSession

__version__ = "1.0.0"
__author__ = "Shuoqi Chen"
__license__ = "MIT"
__all__ = [
    "WatercolorEngine",
    "PhysicsParams",
    "PigmentProps",
    "BrushRanges",
    "BrushMode",
    "BrushStroke",
    "StrokeSession",
    "WatercolorEngineError",
    "InvalidTextureDimensions",
    "InvalidGridDimensions",
]
