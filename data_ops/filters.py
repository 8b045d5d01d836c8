"""
Row filtering and filter-range support.

- compute_range() derives a column's numeric [min, max] (0..100 when the
  column has no finite values).
- matches() / filter_rows() apply the per-axis min / max / ignore-zero
  predicates of a graph.
- AxisFilterControl keeps a filter's two text fields and the two handles
  of its range slider in step with each other; FilterRangeCache holds one
  control per axis plus the data-derived ranges for a graph.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Optional, Sequence

import numpy as np

import config
from data_ops.store import numeric_column, parse_number

if TYPE_CHECKING:
    from workspace.models import AxisFilter, ColumnMapping, Graph

DEFAULT_RANGE_MIN = 0.0
DEFAULT_RANGE_MAX = 100.0

# Text field / slider handle names of one axis filter
FILTER_BOUNDS = ("min", "max")


@dataclass(frozen=True)
class AxisRange:
    """Numeric extent of one column."""

    min: float = DEFAULT_RANGE_MIN
    max: float = DEFAULT_RANGE_MAX

    @property
    def span(self) -> float:
        return self.max - self.min

    def clamp(self, value: float) -> float:
        return max(self.min, min(self.max, value))


def compute_range(rows: Sequence[Mapping], column: Optional[str]) -> AxisRange:
    """Min/max of the finite numeric values of *column* over *rows*.

    Falls back to 0..100 when the column is unset or holds no finite values.
    """
    if not column:
        return AxisRange()
    values = numeric_column(rows, column)
    values = values[np.isfinite(values)]
    if values.size == 0:
        return AxisRange()
    return AxisRange(float(values.min()), float(values.max()))


def _reject_mask(values: np.ndarray, flt: AxisFilter) -> np.ndarray:
    """Boolean mask of the values rejected by *flt*.

    NaN values are rejected only when a bound is set; ignore-zero rejects
    exact zeros only.
    """
    rejected = np.zeros(values.shape, dtype=bool)
    if flt.ignore_zero:
        rejected |= values == 0
    if flt.has_bounds:
        rejected |= np.isnan(values)
    with np.errstate(invalid="ignore"):
        if flt.min is not None:
            rejected |= values < flt.min
        if flt.max is not None:
            rejected |= values > flt.max
    return rejected


def matches(row: Mapping, graph: Graph) -> bool:
    """True when no active axis of *graph* rejects *row*.

    The z filter is only consulted for 3D dimensionalities.
    """
    for axis in graph.active_axes:
        value = np.array([parse_number(row.get(graph.columns.get(axis) or ""))])
        if _reject_mask(value, graph.filters[axis])[0]:
            return False
    return True


def filter_rows(rows: Sequence[Mapping], graph: Graph) -> list[dict]:
    """Rows of *rows* that pass every active axis filter, in input order."""
    keep = np.ones(len(rows), dtype=bool)
    for axis in graph.active_axes:
        flt = graph.filters[axis]
        if not flt.ignore_zero and not flt.has_bounds:
            continue
        column = graph.columns.get(axis)
        values = numeric_column(rows, column) if column else np.full(len(rows), np.nan)
        keep &= ~_reject_mask(values, flt)
    return [row for row, ok in zip(rows, keep) if ok]


# ---------------------------------------------------------------------------
# Text / slider synchronisation
# ---------------------------------------------------------------------------

def parse_float_or_none(text) -> Optional[float]:
    """Parse a filter text field; blank or non-numeric text means "unset"."""
    if text is None or text == "":
        return None
    value = parse_number(text)
    return None if math.isnan(value) else value


def format_slider_value(value: float) -> str:
    """Integral values without decimals, everything else to 2 places."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


def format_filter_value(value: Optional[float]) -> str:
    """Text shown for a stored filter bound ("" when unset)."""
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass
class AxisFilterControl:
    """Text fields and dual-handle slider for one axis filter.

    The slider spans ``data_range`` in ``steps`` equal increments. The low
    handle never passes the high handle and vice versa.
    """

    data_range: AxisRange = field(default_factory=AxisRange)
    steps: int = 200
    low: float = DEFAULT_RANGE_MIN
    high: float = DEFAULT_RANGE_MAX
    low_text: str = ""
    high_text: str = ""

    @property
    def step(self) -> float:
        span = self.data_range.span
        return span / self.steps if span > 0 else 1.0

    def quantize(self, value: float) -> float:
        """Clamp *value* into the data range and snap it to the slider grid."""
        rng = self.data_range
        value = rng.clamp(value)
        if rng.span <= 0:
            return rng.min
        snapped = rng.min + round((value - rng.min) / self.step) * self.step
        return rng.clamp(snapped)

    def reset(self, data_range: Optional[AxisRange] = None) -> None:
        """Full range: both texts blank, handles at the data min/max."""
        if data_range is not None:
            self.data_range = data_range
        self.low = self.data_range.min
        self.high = self.data_range.max
        self.low_text = ""
        self.high_text = ""

    def sync_text_to_slider(self) -> None:
        """Move both handles to the text values (boundary when unparsable)."""
        low = parse_float_or_none(self.low_text)
        high = parse_float_or_none(self.high_text)
        self.low = self.quantize(self.data_range.min if low is None else low)
        self.high = self.quantize(self.data_range.max if high is None else high)

    def set_text(self, bound: str, text: str) -> None:
        if bound == "min":
            self.low_text = text
        elif bound == "max":
            self.high_text = text
        else:
            raise ValueError(f"Unknown filter bound '{bound}'")
        self.sync_text_to_slider()

    def drag(self, bound: str, value: float) -> float:
        """Move one handle during a drag and mirror it into its text field.

        Returns:
            The handle position actually applied.
        """
        value = self.quantize(value)
        if bound == "min":
            self.low = min(value, self.high)
            self.low_text = format_slider_value(self.low)
            return self.low
        if bound == "max":
            self.high = max(value, self.low)
            self.high_text = format_slider_value(self.high)
            return self.high
        raise ValueError(f"Unknown filter bound '{bound}'")

    def load_filter(self, flt: AxisFilter) -> None:
        """Show a stored filter: texts from its bounds, handles synced."""
        self.low_text = format_filter_value(flt.min)
        self.high_text = format_filter_value(flt.max)
        self.sync_text_to_slider()

    def bounds(self) -> tuple[Optional[float], Optional[float]]:
        """Filter bounds currently typed in the text fields."""
        return parse_float_or_none(self.low_text), parse_float_or_none(self.high_text)

    def visual(self) -> tuple[float, float]:
        """(left, width) of the selected span as fractions of the slider."""
        span = self.data_range.span
        if span == 0:
            return 0.0, 1.0
        left = (self.low - self.data_range.min) / span
        right = (self.high - self.data_range.min) / span
        return left, right - left


class FilterRangeCache:
    """Data-derived ranges and filter controls of one graph.

    Purely derived state: rebuilt whenever the sheet or column mapping
    changes and never part of a history snapshot.
    """

    def __init__(self, steps: Optional[int] = None):
        self.steps = steps if steps is not None else config.SLIDER_STEPS
        self.ranges: dict[str, AxisRange] = {}
        self.controls: dict[str, AxisFilterControl] = {}
        for axis in ("x", "y", "z"):
            self.ranges[axis] = AxisRange()
            self.controls[axis] = AxisFilterControl(steps=self.steps)

    def rebuild(self, rows: Sequence[Mapping], columns: ColumnMapping,
                filters: Optional[Mapping[str, AxisFilter]] = None) -> None:
        """Recompute every axis range; re-place handles from *filters*."""
        for axis, control in self.controls.items():
            self.ranges[axis] = compute_range(rows, columns.get(axis))
            control.data_range = self.ranges[axis]
            if filters is not None:
                control.load_filter(filters[axis])
            else:
                control.reset()

    def reset_axis(self, axis: str) -> None:
        self.controls[axis].reset(self.ranges[axis])

    def load_filters(self, filters: Mapping[str, AxisFilter]) -> None:
        for axis, control in self.controls.items():
            control.load_filter(filters[axis])


def filter_label(axis: str, columns: ColumnMapping) -> str:
    """Heading of an axis filter: the mapped column name, else "X-Axis"."""
    column = columns.get(axis) or f"{axis.upper()}-Axis"
    return f"{column} Filter"
