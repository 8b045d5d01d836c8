"""
Overlay geometry for user-added points, lines and surfaces.

Each build_* method returns one plotly trace or raises OverlayBuildError
with a user-facing message. Callers catch the error per overlay so a bad
equation never prevents sibling overlays from rendering.

Geometry:
- equation lines sample y = f(x) at LINE_SAMPLES evenly spaced x values
  across the filtered x column;
- z = f(x, y) surfaces are GRID_SIZE x GRID_SIZE heightfields (go.Surface);
- y = f(x, z) and x = f(y, z) surfaces are vertex grids with two triangles
  per cell (go.Mesh3d), since they cannot be expressed as heightfields;
- parametric surfaces sample u, v over [0, 2*pi];
- point meshes are passed through for alpha-hull triangulation.
"""

from __future__ import annotations

import logging
import math
from typing import Mapping, Optional

import numpy as np
import plotly.graph_objects as go

import config
from data_ops.expressions import ExpressionEvaluator
from data_ops.filters import AxisRange
from workspace.models import (
    LINE_MODE_EQUATION,
    LINE_MODE_POINTS,
    SURFACE_MODE_EQUATION,
    SURFACE_MODE_PARAMETRIC,
    SURFACE_MODE_POINTS,
    OverlayLine,
    OverlayPoint,
    OverlaySurface,
)

logger = logging.getLogger("graphdeck")

# Overlay symbol names -> plotly marker symbols
SYMBOL_MAP = {
    "circle": "circle",
    "square": "square",
    "diamond": "diamond",
    "cross": "cross",
    "x": "x",
    "triangle": "triangle-up",
    "star": "star",
}

_NO_DATA = "produced no valid data. Check your equation or points."


class OverlayBuildError(Exception):
    """Raised when an overlay cannot be turned into geometry.

    The message is user-facing (empty equation, too few points, or the
    expression diagnostic when every sample failed).
    """


def _finite(values) -> np.ndarray:
    values = np.asarray(values, dtype=np.float64)
    return values[np.isfinite(values)]


class OverlayBuilder:
    """Builds overlay traces, evaluating equations with one shared evaluator."""

    def __init__(
        self,
        evaluator: Optional[ExpressionEvaluator] = None,
        line_samples: Optional[int] = None,
        grid_size: Optional[int] = None,
    ):
        self.evaluator = evaluator or ExpressionEvaluator()
        self.line_samples = line_samples or config.LINE_SAMPLES
        self.grid_size = grid_size or config.GRID_SIZE

    # ---- validation -------------------------------------------------------

    def _check_samples(self, values: np.ndarray) -> None:
        """Fail with the pending diagnostic when every sample is NaN.

        The diagnostic is consumed either way.
        """
        error = self.evaluator.consume_error()
        if values.size and np.isnan(values).all() and error:
            raise OverlayBuildError(error)

    # ---- points -----------------------------------------------------------

    def build_point(self, point: OverlayPoint, is_3d: bool, disable_hover: bool = False):
        marker = dict(
            color=point.color,
            size=point.size,
            symbol=SYMBOL_MAP.get(point.symbol, "circle"),
        )
        if is_3d:
            return go.Scatter3d(
                name=point.name,
                x=[point.x], y=[point.y], z=[point.z],
                mode="markers",
                marker=marker,
                hoverinfo="skip" if disable_hover else "name+x+y+z",
            )
        return go.Scatter(
            name=point.name,
            x=[point.x], y=[point.y],
            mode="markers",
            marker=marker,
            hoverinfo="skip" if disable_hover else "name+x+y",
        )

    # ---- lines ------------------------------------------------------------

    def sample_line(self, expression: str, x_min: float, x_max: float) -> tuple[np.ndarray, np.ndarray]:
        """Evaluate *expression* at evenly spaced x values in [x_min, x_max]."""
        xs = np.linspace(x_min, x_max, self.line_samples)
        ys = np.array([self.evaluator.evaluate(expression, {"x": float(x)}) for x in xs])
        return xs, ys

    def build_line(
        self,
        line: OverlayLine,
        x_values,
        is_3d: bool,
        disable_hover: bool = False,
    ):
        """Build a line overlay.

        Args:
            line: The overlay definition.
            x_values: Parsed x column of the filtered rows; its finite
                extent is the sampling domain of equation lines.
            is_3d: Whether the graph is 3D (z is ignored otherwise).
            disable_hover: Suppress hover for this trace.
        """
        if line.mode == LINE_MODE_EQUATION:
            y_expr = (line.equation.y or "").strip()
            if not y_expr:
                raise OverlayBuildError(
                    'Line equation for y is empty. Please enter an equation like "2*x + 1".'
                )
            domain = _finite(x_values)
            if domain.size == 0:
                raise OverlayBuildError(_NO_DATA)
            xs, ys = self.sample_line(y_expr, float(domain.min()), float(domain.max()))
            self._check_samples(ys)
            zs = np.zeros_like(xs)
            z_expr = (line.equation.z or "").strip()
            if is_3d and z_expr:
                zs = np.array([self.evaluator.evaluate(z_expr, {"x": float(x)}) for x in xs])
                self._check_samples(zs)
            x, y, z = xs.tolist(), ys.tolist(), zs.tolist()
        elif line.mode == LINE_MODE_POINTS:
            if len(line.points) < 2:
                raise OverlayBuildError("At least 2 points are required for a line.")
            x = [p.x for p in line.points]
            y = [p.y for p in line.points]
            z = [p.z for p in line.points]
        else:
            raise OverlayBuildError(f"Unknown line mode '{line.mode}'.")

        style = dict(color=line.color, width=line.width)
        hoverinfo = "skip" if disable_hover else "name"
        if is_3d:
            return go.Scatter3d(name=line.name, x=x, y=y, z=z, mode="lines",
                                line=style, hoverinfo=hoverinfo)
        return go.Scatter(name=line.name, x=x, y=y, mode="lines",
                          line=style, hoverinfo=hoverinfo)

    # ---- surfaces ---------------------------------------------------------

    def build_surface(
        self,
        surface: OverlaySurface,
        domains: Mapping[str, AxisRange],
        disable_hover: bool = False,
    ):
        """Build a surface overlay (3D graphs only).

        Args:
            surface: The overlay definition.
            domains: Data-derived range per axis ("x", "y", "z") of the
                filtered rows; used by equation-grid surfaces.
            disable_hover: Suppress hover for this trace.
        """
        if surface.mode == SURFACE_MODE_EQUATION:
            if not (surface.surface_equation.expression or "").strip():
                raise OverlayBuildError("Surface equation is empty. Please enter an equation.")
            return self.build_equation_surface(surface, domains, disable_hover)
        if surface.mode == SURFACE_MODE_PARAMETRIC:
            eqs = surface.parametric
            if not all((expr or "").strip() for expr in (eqs.x, eqs.y, eqs.z)):
                raise OverlayBuildError("All three parametric equations (x, y, z) are required.")
            return self.build_parametric_surface(surface, disable_hover)
        if surface.mode == SURFACE_MODE_POINTS:
            if len(surface.points) < 3:
                raise OverlayBuildError("At least 3 points are required for a surface mesh.")
            return self.build_point_mesh(surface, disable_hover)
        raise OverlayBuildError(f"Unknown surface mode '{surface.mode}'.")

    def _grid(self, rng: AxisRange) -> np.ndarray:
        return np.linspace(rng.min, rng.max, self.grid_size)

    def build_equation_surface(self, surface: OverlaySurface, domains: Mapping[str, AxisRange],
                               disable_hover: bool = False):
        variable = surface.surface_equation.variable
        expression = surface.surface_equation.expression.strip()
        hoverinfo = "skip" if disable_hover else "x+y+z+name"
        n = self.grid_size

        if variable == "z":
            xs = self._grid(domains["x"])
            ys = self._grid(domains["y"])
            zs = np.empty((n, n))
            for i, y in enumerate(ys):
                for j, x in enumerate(xs):
                    zs[i, j] = self.evaluator.evaluate(expression, {"x": float(x), "y": float(y)})
            self._check_samples(zs)
            return go.Surface(
                name=surface.name,
                x=xs.tolist(), y=ys.tolist(), z=zs.tolist(),
                colorscale=[[0, surface.color], [1, surface.color]],
                opacity=surface.opacity,
                showscale=False,
                hoverinfo=hoverinfo,
            )

        if variable not in ("x", "y"):
            raise OverlayBuildError(f"Unknown dependent variable '{variable}'.")

        # Outer loop walks z, inner loop walks the other independent axis
        inner_axis = "x" if variable == "y" else "y"
        inner = self._grid(domains[inner_axis])
        outer = self._grid(domains["z"])
        vx, vy, vz = [], [], []
        for z in outer:
            for a in inner:
                bindings = {inner_axis: float(a), "z": float(z)}
                value = self.evaluator.evaluate(expression, bindings)
                if variable == "y":
                    vx.append(float(a))
                    vy.append(value)
                else:
                    vx.append(value)
                    vy.append(float(a))
                vz.append(float(z))
        self._check_samples(np.array(vy if variable == "y" else vx))

        i_idx, j_idx, k_idx = grid_triangles(n)
        return go.Mesh3d(
            name=surface.name,
            x=vx, y=vy, z=vz,
            i=i_idx, j=j_idx, k=k_idx,
            color=surface.color,
            opacity=surface.opacity,
            hoverinfo=hoverinfo,
        )

    def build_parametric_surface(self, surface: OverlaySurface, disable_hover: bool = False):
        eqs = surface.parametric
        params = np.linspace(0.0, 2 * math.pi, self.grid_size)
        grids = {}
        for axis, expression in (("x", eqs.x), ("y", eqs.y), ("z", eqs.z)):
            # v walks rows, u walks columns; t is u under another name
            grid = np.empty((self.grid_size, self.grid_size))
            for i, v in enumerate(params):
                for j, u in enumerate(params):
                    bindings = {"t": float(u), "u": float(u), "v": float(v)}
                    grid[i, j] = self.evaluator.evaluate(expression.strip(), bindings)
            self._check_samples(grid)
            grids[axis] = grid
        return go.Surface(
            name=surface.name,
            x=grids["x"].tolist(), y=grids["y"].tolist(), z=grids["z"].tolist(),
            colorscale=[[0, surface.color], [1, surface.color]],
            opacity=surface.opacity,
            showscale=False,
            hoverinfo="skip" if disable_hover else "x+y+z+name",
        )

    def build_point_mesh(self, surface: OverlaySurface, disable_hover: bool = False):
        return go.Mesh3d(
            name=surface.name,
            x=[p.x for p in surface.points],
            y=[p.y for p in surface.points],
            z=[p.z for p in surface.points],
            color=surface.color,
            opacity=surface.opacity,
            alphahull=0,
            hoverinfo="skip" if disable_hover else "x+y+z+name",
        )


def grid_triangles(n: int) -> tuple[list[int], list[int], list[int]]:
    """Triangle index lists for an n x n row-major vertex grid.

    Each cell (top-left, top-right, bottom-left, bottom-right) is split
    along the top-right / bottom-left diagonal into two triangles,
    giving 2 * (n - 1)^2 triangles.
    """
    i_idx, j_idx, k_idx = [], [], []
    for row in range(n - 1):
        for col in range(n - 1):
            top_left = row * n + col
            top_right = top_left + 1
            bottom_left = (row + 1) * n + col
            bottom_right = bottom_left + 1
            for a, b, c in ((top_left, top_right, bottom_left),
                            (bottom_left, top_right, bottom_right)):
                i_idx.append(a)
                j_idx.append(b)
                k_idx.append(c)
    return i_idx, j_idx, k_idx
