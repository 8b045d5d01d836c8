"""
Graph configuration entities.

A Graph is one configured visualization: source sheet, dimensionality,
series kind, column roles, per-axis filters, hover settings and three
overlay collections. Every entity has an explicit ``clone()`` so history
snapshots never share mutable substructure with the live graph.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# Dimensionalities
DIM_2D = "2D"
DIM_2D_COLOR = "2D with Color"
DIM_3D = "3D"
DIM_3D_COLOR = "3D with Color"
DIMENSIONALITIES = (DIM_2D, DIM_2D_COLOR, DIM_3D, DIM_3D_COLOR)

# Series kinds
KIND_SCATTER = "Scatter"
KIND_LINE = "Line"
KIND_BAR = "Bar"
KIND_SCATTER_3D = "3D Scatter"
_KINDS_2D = (KIND_SCATTER, KIND_LINE, KIND_BAR)
_KINDS_3D = (KIND_SCATTER_3D,)

AXES = ("x", "y", "z")
COLUMN_ROLES = ("x", "y", "z", "color")

LINE_MODE_EQUATION = "equation"
LINE_MODE_POINTS = "points"
LINE_MODES = (LINE_MODE_EQUATION, LINE_MODE_POINTS)

SURFACE_MODE_EQUATION = "surface"
SURFACE_MODE_PARAMETRIC = "parametric"
SURFACE_MODE_POINTS = "points"
SURFACE_MODES = (SURFACE_MODE_EQUATION, SURFACE_MODE_PARAMETRIC, SURFACE_MODE_POINTS)

SYMBOLS = ("circle", "square", "diamond", "cross", "x", "triangle", "star")


def is_3d(dimensionality: str) -> bool:
    return "3D" in dimensionality


def has_color(dimensionality: str) -> bool:
    return "Color" in dimensionality


def valid_series_kinds(dimensionality: str) -> tuple[str, ...]:
    """Series kinds allowed for *dimensionality*."""
    return _KINDS_3D if is_3d(dimensionality) else _KINDS_2D


def default_series_kind(dimensionality: str) -> str:
    return valid_series_kinds(dimensionality)[0]


# ---------------------------------------------------------------------------
# Column roles and filters
# ---------------------------------------------------------------------------

@dataclass
class ColumnMapping:
    """Column names bound to each role; z and color may be unset."""

    x: str = ""
    y: str = ""
    z: Optional[str] = None
    color: Optional[str] = None

    def get(self, role: str) -> Optional[str]:
        return getattr(self, role)

    def clone(self) -> ColumnMapping:
        return ColumnMapping(x=self.x, y=self.y, z=self.z, color=self.color)


@dataclass
class AxisFilter:
    """Per-axis row predicate. None bounds mean "no limit"."""

    min: Optional[float] = None
    max: Optional[float] = None
    ignore_zero: bool = False

    @property
    def has_bounds(self) -> bool:
        return self.min is not None or self.max is not None

    def clone(self) -> AxisFilter:
        return AxisFilter(min=self.min, max=self.max, ignore_zero=self.ignore_zero)


def _default_filters() -> dict[str, AxisFilter]:
    return {axis: AxisFilter() for axis in AXES}


def clone_filters(filters: dict[str, AxisFilter]) -> dict[str, AxisFilter]:
    return {axis: flt.clone() for axis, flt in filters.items()}


# ---------------------------------------------------------------------------
# Overlays
# ---------------------------------------------------------------------------

@dataclass
class Vertex:
    """One explicit coordinate of a points-mode line or surface."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def clone(self) -> Vertex:
        return Vertex(self.x, self.y, self.z)


def clone_vertices(points: list[Vertex]) -> list[Vertex]:
    return [p.clone() for p in points]


@dataclass
class OverlayPoint:
    name: str = "Point"
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    color: str = "#ef4444"
    size: int = 12
    symbol: str = "circle"
    visible: bool = True

    def clone(self) -> OverlayPoint:
        return OverlayPoint(
            name=self.name, x=self.x, y=self.y, z=self.z,
            color=self.color, size=self.size, symbol=self.symbol,
            visible=self.visible,
        )


@dataclass
class LineEquation:
    """y = f(x) and, on 3D graphs only, an optional z = g(x)."""

    y: str = ""
    z: str = ""

    def clone(self) -> LineEquation:
        return LineEquation(y=self.y, z=self.z)


@dataclass
class OverlayLine:
    name: str = "Line"
    color: str = "#3b82f6"
    width: int = 2
    mode: str = LINE_MODE_EQUATION
    equation: LineEquation = field(default_factory=LineEquation)
    points: list[Vertex] = field(default_factory=list)
    visible: bool = True

    def clone(self) -> OverlayLine:
        return OverlayLine(
            name=self.name, color=self.color, width=self.width, mode=self.mode,
            equation=self.equation.clone(), points=clone_vertices(self.points),
            visible=self.visible,
        )


@dataclass
class SurfaceEquation:
    """``variable = expression`` over the two remaining axes."""

    variable: str = "z"
    expression: str = ""

    def clone(self) -> SurfaceEquation:
        return SurfaceEquation(variable=self.variable, expression=self.expression)


@dataclass
class ParametricEquations:
    """x(u,v), y(u,v), z(u,v); ``t`` is accepted as an alias of ``u``."""

    x: str = ""
    y: str = ""
    z: str = ""

    def clone(self) -> ParametricEquations:
        return ParametricEquations(x=self.x, y=self.y, z=self.z)


@dataclass
class OverlaySurface:
    name: str = "Surface"
    color: str = "#10b981"
    opacity: float = 0.7
    mode: str = SURFACE_MODE_EQUATION
    surface_equation: SurfaceEquation = field(default_factory=SurfaceEquation)
    parametric: ParametricEquations = field(default_factory=ParametricEquations)
    points: list[Vertex] = field(default_factory=list)
    visible: bool = True

    def clone(self) -> OverlaySurface:
        return OverlaySurface(
            name=self.name, color=self.color, opacity=self.opacity, mode=self.mode,
            surface_equation=self.surface_equation.clone(),
            parametric=self.parametric.clone(),
            points=clone_vertices(self.points),
            visible=self.visible,
        )


# ---------------------------------------------------------------------------
# Graph and its history snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GraphSnapshot:
    """Deep copy of every configurable field of a Graph (one history entry).

    The containers inside are private copies; ``Graph.restore`` clones them
    again so a stored snapshot is never aliased by live state.
    """

    title: str
    sheet_name: str
    dimensionality: str
    series_kind: str
    columns: ColumnMapping
    filters: dict
    overlay_points: tuple
    overlay_lines: tuple
    overlay_surfaces: tuple
    hover_fields: tuple
    disable_overlay_hover: bool


@dataclass
class Graph:
    id: int
    title: str = ""
    sheet_name: str = ""
    dimensionality: str = DIM_2D
    series_kind: str = KIND_SCATTER
    columns: ColumnMapping = field(default_factory=ColumnMapping)
    filters: dict[str, AxisFilter] = field(default_factory=_default_filters)
    overlay_points: list[OverlayPoint] = field(default_factory=list)
    overlay_lines: list[OverlayLine] = field(default_factory=list)
    overlay_surfaces: list[OverlaySurface] = field(default_factory=list)
    hover_fields: list[str] = field(default_factory=list)
    disable_overlay_hover: bool = False

    @property
    def is_3d(self) -> bool:
        return is_3d(self.dimensionality)

    @property
    def has_color(self) -> bool:
        return has_color(self.dimensionality)

    @property
    def active_axes(self) -> tuple[str, ...]:
        """Axes whose filters take part in row filtering."""
        return AXES if self.is_3d else AXES[:2]

    @property
    def display_title(self) -> str:
        return self.title or f"Graph {self.id}"

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            title=self.title,
            sheet_name=self.sheet_name,
            dimensionality=self.dimensionality,
            series_kind=self.series_kind,
            columns=self.columns.clone(),
            filters=clone_filters(self.filters),
            overlay_points=tuple(p.clone() for p in self.overlay_points),
            overlay_lines=tuple(line.clone() for line in self.overlay_lines),
            overlay_surfaces=tuple(s.clone() for s in self.overlay_surfaces),
            hover_fields=tuple(self.hover_fields),
            disable_overlay_hover=self.disable_overlay_hover,
        )

    def restore(self, snapshot: GraphSnapshot) -> None:
        """Overwrite the configurable fields with private copies from *snapshot*."""
        self.title = snapshot.title
        self.sheet_name = snapshot.sheet_name
        self.dimensionality = snapshot.dimensionality
        self.series_kind = snapshot.series_kind
        self.columns = snapshot.columns.clone()
        self.filters = clone_filters(snapshot.filters)
        self.overlay_points = [p.clone() for p in snapshot.overlay_points]
        self.overlay_lines = [line.clone() for line in snapshot.overlay_lines]
        self.overlay_surfaces = [s.clone() for s in snapshot.overlay_surfaces]
        self.hover_fields = list(snapshot.hover_fields)
        self.disable_overlay_hover = snapshot.disable_overlay_hover
