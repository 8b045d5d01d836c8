"""
In-memory sheet store.

Sheet holds one named table as an ordered column list plus row records
(column -> scalar mappings), exactly as handed over by the ingestion step.
SheetStore is a dict-like container keyed by sheet name.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import numpy as np
import pandas as pd

EXAMPLE_SHEET_NAME = "Example Data"


def parse_number(value: Any) -> float:
    """Parse a cell value to a float, returning NaN when it is not numeric.

    Numbers pass through, strings are parsed after stripping whitespace,
    everything else (None, booleans, dates) is NaN.
    """
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


@dataclass
class Sheet:
    """A single named table stored in memory.

    Attributes:
        name: Sheet name as shown to the user (e.g., "Sheet1").
        columns: Column names in source order.
        rows: Row records mapping column name to a number, text or None.
    """

    name: str
    columns: list[str] = field(default_factory=list)
    rows: list[dict] = field(default_factory=list)


def numeric_column(rows: Iterable[Mapping], column: str) -> np.ndarray:
    """Parse the *column* cell of every row, NaN where the cell is not numeric."""
    series = pd.Series([row.get(column) for row in rows], dtype=object)
    return series.map(parse_number).to_numpy(dtype=np.float64)


class SheetStore:
    """In-memory store mapping sheet names to Sheet objects, in load order."""

    def __init__(self):
        self._sheets: dict[str, Sheet] = {}

    def put(self, sheet: Sheet) -> None:
        """Store a Sheet, overwriting any existing sheet with the same name."""
        self._sheets[sheet.name] = sheet

    def get(self, name: Optional[str]) -> Optional[Sheet]:
        """Retrieve a Sheet by name, or None if not found."""
        if name is None:
            return None
        return self._sheets.get(name)

    def has(self, name: str) -> bool:
        return name in self._sheets

    def names(self) -> list[str]:
        """Sheet names in load order."""
        return list(self._sheets)

    def first(self) -> Optional[Sheet]:
        for sheet in self._sheets.values():
            return sheet
        return None

    def columns(self, name: Optional[str]) -> list[str]:
        """Column order of sheet *name*, empty when the sheet is unknown."""
        sheet = self.get(name)
        return list(sheet.columns) if sheet is not None else []

    def rows(self, name: Optional[str]) -> list[dict]:
        sheet = self.get(name)
        return sheet.rows if sheet is not None else []

    def clear(self) -> None:
        """Remove all sheets."""
        self._sheets.clear()

    def load(self, sheets: Mapping[str, Any]) -> int:
        """Replace the store contents with *sheets*.

        Each value is either a Sheet, a ``{"columns": [...], "rows": [...]}``
        mapping (``orderedColumns`` is accepted as an alias of ``columns``),
        or a DataFrame. Rows missing from a column list keep their order of
        first appearance.

        Returns:
            Number of sheets loaded.
        """
        self.clear()
        for name, payload in sheets.items():
            self.put(sheet_from_payload(name, payload))
        return len(self._sheets)

    def __len__(self) -> int:
        return len(self._sheets)

    def __contains__(self, name: str) -> bool:
        return name in self._sheets


def sheet_from_payload(name: str, payload: Any) -> Sheet:
    """Build a Sheet from any of the accepted sheet representations."""
    if isinstance(payload, Sheet):
        return Sheet(name=name, columns=list(payload.columns), rows=list(payload.rows))
    if isinstance(payload, pd.DataFrame):
        frame = payload.astype(object).where(pd.notna(payload), None)
        return Sheet(
            name=name,
            columns=[str(c) for c in frame.columns],
            rows=[{str(k): v for k, v in rec.items()} for rec in frame.to_dict(orient="records")],
        )
    rows = [dict(r) for r in payload.get("rows", [])]
    columns = payload.get("columns") or payload.get("orderedColumns")
    if not columns:
        columns = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)
    return Sheet(name=name, columns=[str(c) for c in columns], rows=rows)


def build_example_sheet(grid_size: int = 35, extent: float = 4.0, scale: float = 1000.0) -> Sheet:
    """Gaussian-modulated ripple sampled on a square grid.

    z = cos(1.5 r / scale) * exp(-r^2 / (8 scale^2)) * scale, where r is the
    distance from the origin. Columns: X, Y, Z, Radius, Amplitude.
    """
    axis = np.linspace(-extent, extent, grid_size) * scale
    rows = []
    for x in axis:
        for y in axis:
            r = math.hypot(x, y)
            z = math.cos(r / scale * 1.5) * math.exp(-r * r / (scale * scale * 8)) * scale
            rows.append({
                "X": float(x),
                "Y": float(y),
                "Z": z,
                "Radius": r,
                "Amplitude": z,
            })
    return Sheet(
        name=EXAMPLE_SHEET_NAME,
        columns=["X", "Y", "Z", "Radius", "Amplitude"],
        rows=rows,
    )
