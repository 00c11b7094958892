"""Per-cell canvas state and the models that evolve and composite it."""
from .grid import Cell, GridState

__all__ = ["Cell", "GridState"]
