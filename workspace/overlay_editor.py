"""
OverlayEditor - one editing transaction over a graph's overlays.

Opening the editor captures the overlays and hover settings as they are.
Edits apply to the live graph but are not drawn until ``apply()``, which
records a single undo step whose "before" state is the captured one.
Visibility toggles are the exception: they redraw at once.

``discard()`` puts the captured state back; ``close()`` keeps the edits
without recording them.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any, Optional

from workspace.logging import tagged
from workspace.models import (
    LINE_MODES,
    SURFACE_MODES,
    SYMBOLS,
    OverlayLine,
    OverlayPoint,
    OverlaySurface,
    Vertex,
)

if TYPE_CHECKING:
    from rendering.plotly_renderer import RenderResult
    from workspace.session import GraphSession

logger = logging.getLogger("graphdeck")

POINT = "point"
LINE = "line"
SURFACE = "surface"
OVERLAY_KINDS = (POINT, LINE, SURFACE)

_COLLECTIONS = {
    POINT: "overlay_points",
    LINE: "overlay_lines",
    SURFACE: "overlay_surfaces",
}

_FACTORIES = {
    POINT: lambda n: OverlayPoint(name=f"Point {n}"),
    LINE: lambda n: OverlayLine(name=f"Line {n}"),
    SURFACE: lambda n: OverlaySurface(name=f"Surface {n}"),
}

_MODES = {LINE: LINE_MODES, SURFACE: SURFACE_MODES}


class OverlayEditorClosed(RuntimeError):
    """Raised when an editor is used after apply / discard / close."""


class OverlayEditor:
    """Edit points, lines, surfaces and hover settings of one graph."""

    def __init__(self, session: GraphSession, graph_id: int):
        self._session = session
        self.graph_id = graph_id
        graph = self._graph()
        self._opened = graph.snapshot()
        self.closed = False

    # ---- plumbing ----------------------------------------------------------

    def _graph(self):
        graph = self._session.get_graph(self.graph_id)
        if graph is None:
            raise OverlayEditorClosed(f"Graph {self.graph_id} no longer exists")
        return graph

    def _check_open(self) -> None:
        if self.closed:
            raise OverlayEditorClosed("Overlay editor is closed")

    def _items(self, kind: str) -> list:
        if kind not in _COLLECTIONS:
            raise ValueError(f"Unknown overlay kind '{kind}'. Expected one of {', '.join(OVERLAY_KINDS)}")
        self._check_open()
        return getattr(self._graph(), _COLLECTIONS[kind])

    def _item(self, kind: str, index: int):
        items = self._items(kind)
        if not 0 <= index < len(items):
            raise IndexError(f"No {kind} overlay at index {index}")
        return items[index]

    # ---- items -------------------------------------------------------------

    def items(self, kind: str) -> list:
        return list(self._items(kind))

    def add(self, kind: str, **fields: Any):
        """Append a new overlay with defaults ("<Kind> n") and *fields* applied."""
        items = self._items(kind)
        item = _FACTORIES[kind](len(items) + 1)
        items.append(item)
        if fields:
            self.update(kind, len(items) - 1, **fields)
        return item

    def add_point(self, **fields: Any) -> OverlayPoint:
        return self.add(POINT, **fields)

    def add_line(self, **fields: Any) -> OverlayLine:
        return self.add(LINE, **fields)

    def add_surface(self, **fields: Any) -> OverlaySurface:
        return self.add(SURFACE, **fields)

    def remove(self, kind: str, index: int) -> None:
        self._item(kind, index)
        del self._items(kind)[index]

    def update(self, kind: str, index: int, **fields: Any) -> None:
        """Set fields on an overlay.

        Nested equation fields take a dict, e.g.
        ``update("line", 0, equation={"y": "2*x"})``.
        """
        item = self._item(kind, index)
        names = {f.name for f in dataclasses.fields(item)}
        for name, value in fields.items():
            if name not in names or name == "points":
                raise ValueError(f"Unknown {kind} field '{name}'")
            if name == "mode":
                self.set_mode(kind, index, value)
            elif name == "symbol" and value not in SYMBOLS:
                raise ValueError(f"Unknown symbol '{value}'. Expected one of {', '.join(SYMBOLS)}")
            elif isinstance(value, dict):
                nested = getattr(item, name)
                for key, sub in value.items():
                    if not hasattr(nested, key):
                        raise ValueError(f"Unknown {kind} field '{name}.{key}'")
                    setattr(nested, key, sub)
            else:
                setattr(item, name, value)

    def set_mode(self, kind: str, index: int, mode: str) -> None:
        """Switch a line or surface between equation / parametric / points input."""
        if kind not in _MODES:
            raise ValueError(f"{kind.capitalize()} overlays have no mode")
        if mode not in _MODES[kind]:
            raise ValueError(f"Unknown {kind} mode '{mode}'. Expected one of {', '.join(_MODES[kind])}")
        self._item(kind, index).mode = mode

    # ---- vertices (points-mode lines and surfaces) -------------------------

    def _vertices(self, kind: str, index: int) -> list[Vertex]:
        if kind not in _MODES:
            raise ValueError("Only line and surface overlays have vertices")
        return self._item(kind, index).points

    def add_vertex(self, kind: str, index: int, x: float = 0.0, y: float = 0.0, z: float = 0.0) -> Vertex:
        vertex = Vertex(float(x), float(y), float(z))
        self._vertices(kind, index).append(vertex)
        return vertex

    def update_vertex(self, kind: str, index: int, vertex_index: int, coord: str, value: float) -> None:
        if coord not in ("x", "y", "z"):
            raise ValueError(f"Unknown coordinate '{coord}'")
        setattr(self._vertices(kind, index)[vertex_index], coord, float(value))

    def remove_vertex(self, kind: str, index: int, vertex_index: int) -> None:
        del self._vertices(kind, index)[vertex_index]

    # ---- visibility (redraws immediately) ----------------------------------

    def set_visible(self, kind: str, index: int, visible: bool) -> Optional[RenderResult]:
        self._item(kind, index).visible = bool(visible)
        return self._session.render(self.graph_id)

    def set_all_visible(self, kind: str, visible: bool) -> Optional[RenderResult]:
        for item in self._items(kind):
            item.visible = bool(visible)
        return self._session.render(self.graph_id)

    # ---- hover -------------------------------------------------------------

    def available_hover_fields(self) -> list[str]:
        graph = self._graph()
        return self._session.store.columns(graph.sheet_name)

    def set_hover_fields(self, fields) -> list[str]:
        """Select extra hover columns; kept in sheet column order, unknown names dropped."""
        self._check_open()
        wanted = set(fields)
        selected = [c for c in self.available_hover_fields() if c in wanted]
        self._graph().hover_fields = selected
        return selected

    def set_disable_overlay_hover(self, disabled: bool) -> None:
        self._check_open()
        self._graph().disable_overlay_hover = bool(disabled)

    # ---- transaction end ---------------------------------------------------

    def apply(self) -> Optional[RenderResult]:
        """Record the whole editing session as one undo step and redraw."""
        self._check_open()
        graph = self._graph()
        before = dataclasses.replace(
            graph.snapshot(),
            overlay_points=self._opened.overlay_points,
            overlay_lines=self._opened.overlay_lines,
            overlay_surfaces=self._opened.overlay_surfaces,
            hover_fields=self._opened.hover_fields,
            disable_overlay_hover=self._opened.disable_overlay_hover,
        )
        self._session.history.commit(self.graph_id, before)
        self.closed = True
        logger.info(
            f"Overlays applied to graph {self.graph_id}: {len(graph.overlay_points)} point(s), "
            f"{len(graph.overlay_lines)} line(s), {len(graph.overlay_surfaces)} surface(s)",
            extra=tagged("notice"),
        )
        return self._session.render(self.graph_id)

    def discard(self) -> Optional[RenderResult]:
        """Restore the overlays and hover settings captured at open."""
        self._check_open()
        graph = self._graph()
        graph.overlay_points = [p.clone() for p in self._opened.overlay_points]
        graph.overlay_lines = [line.clone() for line in self._opened.overlay_lines]
        graph.overlay_surfaces = [s.clone() for s in self._opened.overlay_surfaces]
        graph.hover_fields = list(self._opened.hover_fields)
        graph.disable_overlay_hover = self._opened.disable_overlay_hover
        self.closed = True
        return self._session.render(self.graph_id)

    def close(self) -> None:
        """End the transaction keeping edits but without an undo step."""
        self.closed = True

    def __enter__(self) -> OverlayEditor:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.closed:
            return
        if exc_type is None:
            self.apply()
        else:
            self.discard()
