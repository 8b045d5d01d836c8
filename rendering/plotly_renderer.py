"""
Plotly figure assembly for one graph.

build_figure() filters the sheet rows, builds the main data trace styled by
dimensionality / series kind / colour mapping, adds every visible overlay
that builds successfully, and lays the figure out. Overlay failures and an
empty filtered dataset are reported as warnings on the RenderResult, never
raised.

The returned go.Figure is the renderer-facing descriptor: the front end
(Plotly.js, an HTML export, an image export) consumes it as-is.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np
import plotly.graph_objects as go

from data_ops.filters import compute_range, filter_rows
from data_ops.store import numeric_column
from rendering.overlays import OverlayBuilder, OverlayBuildError

if TYPE_CHECKING:
    from workspace.models import Graph

logger = logging.getLogger("graphdeck")

_COLORSCALE = "Viridis"
_GRID_COLOR = "#e2e8f0"

# Explicit layout defaults - white canvas regardless of host theme
_DEFAULT_LAYOUT = dict(
    paper_bgcolor="white",
    plot_bgcolor="white",
)

_LEGEND = dict(orientation="h", x=0.5, xanchor="center", y=-0.15, yanchor="top")

EMPTY_DATA_WARNING = "No data after applying filters"


# ---------------------------------------------------------------------------
# RenderResult - return type of build_figure
# ---------------------------------------------------------------------------

class RenderResult:
    """Result of a build_figure() call."""

    __slots__ = ("graph_id", "figure", "warnings", "row_count", "trace_names")

    def __init__(
        self,
        graph_id: int,
        figure: go.Figure,
        warnings: list[str],
        row_count: int,
        trace_names: list[str],
    ):
        self.graph_id = graph_id
        self.figure = figure
        self.warnings = warnings
        self.row_count = row_count
        self.trace_names = trace_names

    def to_dict(self) -> dict:
        return {
            "graph_id": self.graph_id,
            "figure": self.figure.to_plotly_json(),
            "warnings": list(self.warnings),
            "row_count": self.row_count,
        }


# ---------------------------------------------------------------------------
# Main series
# ---------------------------------------------------------------------------

def _numeric(rows: Sequence[dict], column: Optional[str]) -> list[float]:
    if not column:
        return [float("nan")] * len(rows)
    return numeric_column(rows, column).tolist()


def hover_text(rows: Sequence[dict], graph: Graph) -> list[str]:
    """``column: value`` lines for every shown role plus extra hover fields."""
    cols = graph.columns
    shown = [cols.x, cols.y]
    if graph.is_3d:
        shown.append(cols.z)
    if graph.has_color:
        shown.append(cols.color)
    roles = {cols.x, cols.y, cols.z, cols.color}
    extras = [f for f in graph.hover_fields if f not in roles]

    texts = []
    for row in rows:
        parts = [f"{name}: {row.get(name)}" for name in shown]
        parts.extend(f"{name}: {row.get(name)}" for name in extras)
        texts.append("<br>".join(parts))
    return texts


def build_main_trace(rows: Sequence[dict], graph: Graph):
    """Trace for the filtered data rows."""
    cols = graph.columns
    x = _numeric(rows, cols.x)
    y = _numeric(rows, cols.y)
    common = dict(name=graph.display_title, x=x, y=y,
                  text=hover_text(rows, graph), hoverinfo="text")

    color_values = _numeric(rows, cols.color) if graph.has_color else None
    colorbar = dict(title=dict(text=cols.color or "")) if graph.has_color else None

    if graph.is_3d:
        marker = dict(size=5, colorscale=_COLORSCALE, showscale=graph.has_color)
        if color_values is not None:
            marker.update(color=color_values, colorbar=colorbar)
        return go.Scatter3d(z=_numeric(rows, cols.z), mode="markers", marker=marker, **common)

    if graph.series_kind == "Line":
        marker = dict(size=6)
        if color_values is not None:
            marker.update(color=color_values, colorscale=_COLORSCALE)
        return go.Scatter(mode="lines+markers", marker=marker, line=dict(width=2), **common)

    if graph.series_kind == "Bar":
        bar = go.Bar(**common)
        if color_values is not None:
            bar.marker = dict(color=color_values, colorscale=_COLORSCALE,
                              showscale=True, colorbar=colorbar)
        return bar

    marker = dict(size=8, colorscale=_COLORSCALE, showscale=graph.has_color)
    if color_values is not None:
        marker.update(color=color_values, colorbar=colorbar)
    return go.Scatter(mode="markers", marker=marker, **common)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def _axis(title: Optional[str], is_3d: bool) -> dict:
    axis = dict(title=dict(text=title or ""), gridcolor=_GRID_COLOR)
    if not is_3d:
        axis["zeroline"] = False
    return axis


def build_layout(graph: Graph, camera: Optional[dict] = None) -> go.Layout:
    """Layout with axis titles bound to the current columns.

    For 3D graphs *camera* (the viewpoint last reported by the front end)
    is carried over so a redraw keeps the user's orientation.
    """
    cols = graph.columns
    layout = go.Layout(
        title=dict(text=graph.display_title),
        showlegend=True,
        legend=_LEGEND,
        margin=dict(l=60, r=100 if graph.has_color else 30, t=60, b=80),
        **_DEFAULT_LAYOUT,
    )
    if graph.is_3d:
        scene = dict(
            xaxis=_axis(cols.x, True),
            yaxis=_axis(cols.y, True),
            zaxis=_axis(cols.z, True),
            bgcolor="white",
        )
        if camera:
            scene["camera"] = camera
        layout.scene = scene
    else:
        layout.xaxis = _axis(cols.x, False)
        layout.yaxis = _axis(cols.y, False)
    return layout


# ---------------------------------------------------------------------------
# Figure
# ---------------------------------------------------------------------------

def _overlay_label(kind: str, name: str, index: int) -> str:
    return name or f"{kind.capitalize()} {index + 1}"


def build_figure(
    graph: Graph,
    rows: Sequence[dict],
    builder: Optional[OverlayBuilder] = None,
    camera: Optional[dict] = None,
) -> RenderResult:
    """Filter *rows* and assemble the complete figure for *graph*.

    Args:
        graph: Graph configuration.
        rows: All rows of the graph's sheet (unfiltered).
        builder: Overlay builder (a fresh one when omitted).
        camera: Last observed 3D camera, reused in the layout.

    Returns:
        RenderResult with the figure and any user-facing warnings.
    """
    builder = builder or OverlayBuilder()
    warnings: list[str] = []

    filtered = filter_rows(rows, graph)
    if not filtered:
        warnings.append(EMPTY_DATA_WARNING)

    traces = [build_main_trace(filtered, graph)]
    disable_hover = graph.disable_overlay_hover
    is_3d = graph.is_3d

    def attempt(kind: str, name: str, index: int, build):
        try:
            traces.append(build())
        except OverlayBuildError as e:
            message = f'Error in overlay {kind} "{_overlay_label(kind, name, index)}": {e}'
            warnings.append(message)
            logger.warning(message)

    for index, point in enumerate(graph.overlay_points):
        if point.visible:
            attempt("point", point.name, index,
                    lambda p=point: builder.build_point(p, is_3d, disable_hover))

    x_values = np.asarray(_numeric(filtered, graph.columns.x), dtype=np.float64)
    for index, line in enumerate(graph.overlay_lines):
        if line.visible:
            attempt("line", line.name, index,
                    lambda ln=line: builder.build_line(ln, x_values, is_3d, disable_hover))

    if is_3d:
        domains = {axis: compute_range(filtered, graph.columns.get(axis)) for axis in ("x", "y", "z")}
        for index, surface in enumerate(graph.overlay_surfaces):
            if surface.visible:
                attempt("surface", surface.name, index,
                        lambda s=surface: builder.build_surface(s, domains, disable_hover))

    figure = go.Figure(data=traces, layout=build_layout(graph, camera))
    return RenderResult(
        graph_id=graph.id,
        figure=figure,
        warnings=warnings,
        row_count=len(filtered),
        trace_names=[t.name for t in traces],
    )
