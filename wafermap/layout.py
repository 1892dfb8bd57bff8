"""
Layout Logic Module.
Handles the chip grid generation over the wafer and the classification of each
chip against the usable wafer area (circle with an optional flat edge).

Coordinate system: the origin is the wafer center, units are mm and every
chip is addressed by its bottom-left corner.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple, TYPE_CHECKING

import numpy as np

from wafermap.config import (
    DEFAULT_FLAT_ANGLE, DEFAULT_EXCLUDED_RADIUS, DEFAULT_WAFER_DIAMETER,
    DEFAULT_CHIP_WIDTH, DEFAULT_CHIP_HEIGHT, MAX_FLAT_ANGLE, MAX_GRID_CELLS
)
from wafermap.errors import DegenerateWaferError, InvalidDimensionError, WaferParameterError
from wafermap.models import Chip

if TYPE_CHECKING:
    from wafermap.state import WaferParams, ChipParams

logger = logging.getLogger(__name__)


def _is_finite_number(value) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large to convert to float
        return False


@dataclass(frozen=True)
class FlatCutoff:
    """The flat edge: a vertical chord at x = x_cutoff spanning |y| < y_max."""
    x_cutoff: float
    y_max: float


@dataclass(frozen=True)
class WaferSpec:
    diameter: float
    flat_angle: float = 0.0
    excluded_radius: float = 0.0

    def __post_init__(self):
        self._validate()

    def _validate(self):
        if not _is_finite_number(self.diameter) or self.diameter <= 0:
            raise DegenerateWaferError(f"Wafer diameter must be a positive number, got {self.diameter!r}.")
        if not _is_finite_number(self.flat_angle) or not (0 <= self.flat_angle <= MAX_FLAT_ANGLE):
            raise WaferParameterError(f"Flat angle must be between 0 and {MAX_FLAT_ANGLE:g} degrees, got {self.flat_angle!r}.")
        if not _is_finite_number(self.excluded_radius) or self.excluded_radius < 0:
            raise WaferParameterError(f"Excluded radius must be zero or positive, got {self.excluded_radius!r}.")

    @classmethod
    def from_params(cls, params: "WaferParams") -> "WaferSpec":
        return cls(
            diameter=float(params.get('diameter', DEFAULT_WAFER_DIAMETER)),
            flat_angle=float(params.get('flatAngle', DEFAULT_FLAT_ANGLE)),
            excluded_radius=float(params.get('excludedRadius', DEFAULT_EXCLUDED_RADIUS)),
        )

    @property
    def radius(self) -> float:
        return self.diameter / 2

    @property
    def usable_radius(self) -> float:
        # May be zero or negative; such a wafer simply has no inside chips.
        return self.radius - self.excluded_radius

    @property
    def flat_cutoff(self) -> Optional[FlatCutoff]:
        if self.flat_angle <= 0:
            return None
        return get_flat_cutoff(self.radius, self.flat_angle)


@dataclass(frozen=True)
class ChipSpec:
    width: float
    height: float

    def __post_init__(self):
        if not _is_finite_number(self.width) or self.width <= 0:
            raise InvalidDimensionError(f"Chip width must be a positive number, got {self.width!r}.")
        if not _is_finite_number(self.height) or self.height <= 0:
            raise InvalidDimensionError(f"Chip height must be a positive number, got {self.height!r}.")

    @classmethod
    def from_params(cls, params: "ChipParams") -> "ChipSpec":
        return cls(
            width=float(params.get('width', DEFAULT_CHIP_WIDTH)),
            height=float(params.get('height', DEFAULT_CHIP_HEIGHT)),
        )


@dataclass(frozen=True)
class GridParams:
    cols: int
    rows: int
    chip_width: float
    chip_height: float

    @property
    def x_start(self) -> float:
        return -(self.cols * self.chip_width) / 2

    @property
    def y_start(self) -> float:
        return -(self.rows * self.chip_height) / 2

    @property
    def cell_count(self) -> int:
        return self.cols * self.rows

    def get_chip_origin(self, col_index: int, row_index: int) -> Tuple[float, float]:
        """
        Calculates the bottom-left coordinate (x, y) for a chip given its grid index.
        """
        return self.x_start + col_index * self.chip_width, self.y_start + row_index * self.chip_height

    def get_physical_extent(self) -> Tuple[float, float]:
        """Returns the total width and height covered by the grid."""
        return self.cols * self.chip_width, self.rows * self.chip_height


def get_flat_cutoff(wafer_radius: float, flat_angle_deg: float) -> FlatCutoff:
    """
    Calculates the flat edge on the negative-x side of the wafer.
    The flat always uses the full wafer radius, never the usable radius.
    """
    half_angle = math.radians(flat_angle_deg) / 2
    return FlatCutoff(
        x_cutoff=-wafer_radius * math.cos(half_angle),
        y_max=wafer_radius * math.sin(half_angle),
    )


def get_grid_params(wafer: WaferSpec, chip_spec: ChipSpec) -> GridParams:
    """
    Sizes the grid so it covers the full wafer diameter with one spare chip on
    every side. Only the wafer boundary, never the grid extent, clips chips.
    """
    col_span = wafer.diameter / chip_spec.width
    row_span = wafer.diameter / chip_spec.height
    if not (math.isfinite(col_span) and math.isfinite(row_span)):
        raise InvalidDimensionError(
            f"Chip size {chip_spec.width:g} x {chip_spec.height:g} mm is too small for a {wafer.diameter:g} mm wafer."
        )
    cols = math.ceil(col_span) + 2
    rows = math.ceil(row_span) + 2
    grid = GridParams(cols=cols, rows=rows, chip_width=chip_spec.width, chip_height=chip_spec.height)
    if grid.cell_count > MAX_GRID_CELLS:
        raise InvalidDimensionError(
            f"Chip size {chip_spec.width:g} x {chip_spec.height:g} mm needs {grid.cell_count:,} grid cells "
            f"on a {wafer.diameter:g} mm wafer (limit {MAX_GRID_CELLS:,})."
        )
    return grid


def classify_chips(
    x, y,
    chip_width: float,
    chip_height: float,
    usable_radius: float,
    flat: Optional[FlatCutoff] = None
) -> np.ndarray:
    """
    Vectorized containment test. A chip is inside only if all four of its
    corners lie within the usable circle and outside the flat cutoff region.
    Accepts scalars or arrays of bottom-left corners.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    inside = np.ones(np.broadcast(x, y).shape, dtype=bool)

    for dx, dy in ((0.0, 0.0), (chip_width, 0.0), (0.0, chip_height), (chip_width, chip_height)):
        cx = x + dx
        cy = y + dy
        inside &= np.sqrt(cx * cx + cy * cy) <= usable_radius
        if flat is not None:
            inside &= ~((cx < flat.x_cutoff) & (np.abs(cy) < flat.y_max))

    return inside


def generate_chip_grid(wafer: WaferSpec, chip_spec: ChipSpec) -> List[Chip]:
    """
    Generates the full chip grid (inside and outside chips) for a wafer.

    Ids follow the row-major scan (row by row from the lowest y, left to right).
    Inside chips are then numbered 1..N in reading order: ascending y, then
    ascending x. The two orders are independent.
    """
    grid = get_grid_params(wafer, chip_spec)

    # indexing='ij' -> ravel() walks columns within a row, then the next row.
    row_idx, col_idx = np.meshgrid(np.arange(grid.rows), np.arange(grid.cols), indexing='ij')
    xs = (grid.x_start + col_idx * grid.chip_width).ravel()
    ys = (grid.y_start + row_idx * grid.chip_height).ravel()

    inside = classify_chips(xs, ys, grid.chip_width, grid.chip_height, wafer.usable_radius, wafer.flat_cutoff)

    # Reading order: lexsort uses the last key as the primary one.
    inside_idx = np.flatnonzero(inside)
    ordered = inside_idx[np.lexsort((xs[inside_idx], ys[inside_idx]))]
    numbers = np.zeros(len(xs), dtype=int)
    numbers[ordered] = np.arange(1, len(ordered) + 1)

    chips = [
        Chip(
            id=i,
            x=float(xs[i]),
            y=float(ys[i]),
            width=grid.chip_width,
            height=grid.chip_height,
            inside=bool(inside[i]),
            number=int(numbers[i]) if inside[i] else None,
        )
        for i in range(len(xs))
    ]

    logger.debug(
        "Generated %dx%d grid (%d cells) for %.3f mm wafer: %d inside chips",
        grid.cols, grid.rows, grid.cell_count, wafer.diameter, len(ordered)
    )
    return chips
