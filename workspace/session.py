"""
GraphSession - owns every graph of a session and wires user actions to
history, filtering and figure assembly.

All methods run synchronously on the caller's thread. Discrete actions
(menu choices, checkboxes) commit history immediately and redraw at once;
continuous input (typing, slider drags) captures its "before" state once
per burst and commits / redraws when the quiet period elapses.

Unknown or deleted graph ids are ignored: mutators return None / False.
Invalid enumeration values raise ValueError.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

import config
from data_ops.filters import (
    FILTER_BOUNDS,
    AxisFilterControl,
    AxisRange,
    FilterRangeCache,
    filter_label,
    filter_rows,
    parse_float_or_none,
)
from data_ops.store import EXAMPLE_SHEET_NAME, SheetStore, build_example_sheet
from rendering.overlays import OverlayBuilder
from rendering.plotly_renderer import RenderResult, build_figure
from workspace.history import HistoryManager, HistoryState
from workspace.logging import tagged
from workspace.models import (
    AXES,
    COLUMN_ROLES,
    DIM_3D_COLOR,
    DIMENSIONALITIES,
    KIND_SCATTER_3D,
    ColumnMapping,
    Graph,
    default_series_kind,
    is_3d,
    valid_series_kinds,
)
from workspace.registry import GraphRecord, GraphRegistry
from workspace.scheduler import Debouncer, ManualScheduler, Scheduler

logger = logging.getLogger("graphdeck")

REDRAW_CONCERN = "redraw"

RenderCallback = Callable[[int, RenderResult], None]


def _check_axis(axis: str) -> None:
    if axis not in AXES:
        raise ValueError(f"Unknown axis '{axis}'. Expected one of {', '.join(AXES)}")


def _check_bound(bound: str) -> None:
    if bound not in FILTER_BOUNDS:
        raise ValueError(f"Unknown filter bound '{bound}'. Expected one of {', '.join(FILTER_BOUNDS)}")


class GraphSession:
    """In-memory collection of graphs over one loaded dataset."""

    def __init__(
        self,
        store: Optional[SheetStore] = None,
        scheduler: Optional[Scheduler] = None,
        builder: Optional[OverlayBuilder] = None,
        on_render: Optional[RenderCallback] = None,
        history_capacity: Optional[int] = None,
        history_quiet_ms: Optional[float] = None,
        render_quiet_ms: Optional[float] = None,
    ):
        self.store = store or SheetStore()
        self.scheduler = scheduler or ManualScheduler()
        self.builder = builder or OverlayBuilder()
        self.on_render = on_render
        self.registry = GraphRegistry()
        self.debouncer = Debouncer(self.scheduler)
        self.history = HistoryManager(self.registry, self.debouncer, quiet_period_ms=history_quiet_ms)
        self.history_capacity = history_capacity or config.HISTORY_CAPACITY
        self.render_quiet_ms = (
            render_quiet_ms if render_quiet_ms is not None else config.RENDER_QUIET_PERIOD_MS
        )

    # ---- lookup ------------------------------------------------------------

    @property
    def graphs(self) -> list[Graph]:
        return self.registry.graphs()

    def get_graph(self, graph_id: int) -> Optional[Graph]:
        record = self.registry.get(graph_id)
        return record.graph if record is not None else None

    def _rows(self, graph: Graph) -> list[dict]:
        return self.store.rows(graph.sheet_name)

    def _default_columns(self, sheet_name: str) -> ColumnMapping:
        columns = self.store.columns(sheet_name)
        return ColumnMapping(
            x=columns[0] if len(columns) > 0 else "",
            y=columns[1] if len(columns) > 1 else "",
            z=columns[2] if len(columns) > 2 else None,
            color=None,
        )

    # ---- dataset -----------------------------------------------------------

    def load_dataset(self, sheets: Mapping[str, Any], add_graph: bool = True) -> Optional[Graph]:
        """Replace the dataset, dropping every existing graph.

        Returns:
            The default graph added for the new data, if any.
        """
        for graph_id in self.registry.ids():
            self.delete_graph(graph_id)
        count = self.store.load(sheets)
        logger.info(f"Loaded dataset with {count} sheet(s)", extra=tagged("notice"))
        if add_graph and count > 0:
            return self.add_graph()
        return None

    def load_example(self) -> Graph:
        """Load the bundled ripple dataset and configure a 3D colour graph on it."""
        self.load_dataset({EXAMPLE_SHEET_NAME: build_example_sheet()}, add_graph=False)
        graph = self.add_graph(render=False)
        graph.title = "Gaussian Ripple Example Data"
        graph.dimensionality = DIM_3D_COLOR
        graph.series_kind = KIND_SCATTER_3D
        graph.columns = ColumnMapping(x="X", y="Y", z="Z", color="Amplitude")
        self._rebuild_filters(graph.id)
        self.render(graph.id)
        return graph

    # ---- graph lifecycle ---------------------------------------------------

    def add_graph(self, render: bool = True) -> Graph:
        """Create a graph on the first sheet with default settings."""
        graph_id = self.registry.next_id()
        first = self.store.first()
        sheet_name = first.name if first is not None else ""
        graph = Graph(
            id=graph_id,
            title=f"Graph {graph_id}",
            sheet_name=sheet_name,
            columns=self._default_columns(sheet_name),
        )
        record = GraphRecord(
            graph=graph,
            history=HistoryState(self.history_capacity),
            filters=FilterRangeCache(),
        )
        self.registry.add(record)
        self._rebuild_filters(graph_id)
        logger.debug(f"Added graph {graph_id} on sheet '{sheet_name}'")
        if render:
            self.render(graph_id)
        return graph

    def delete_graph(self, graph_id: int) -> bool:
        """Remove a graph together with its history, timers and range cache."""
        if graph_id not in self.registry:
            return False
        self.history.discard(graph_id)
        self.debouncer.cancel_matching(lambda key: key[0] == graph_id)
        self.registry.remove(graph_id)
        logger.info(f"Graph {graph_id} deleted", extra=tagged("notice"))
        return True

    def has_pending_tasks(self, graph_id: int) -> bool:
        return any(key[0] == graph_id for key in self.debouncer.keys())

    def copy_settings(self, target_id: int, source_id: int) -> bool:
        """Deep-copy sheet, dimensionality, kind, columns and filters onto a graph.

        Recorded as one undo step on the target.
        """
        source = self.registry.get(source_id)
        target = self.registry.get(target_id)
        if source is None or target is None:
            return False
        self.history.record_immediate(target_id)
        target.graph.sheet_name = source.graph.sheet_name
        target.graph.dimensionality = source.graph.dimensionality
        target.graph.series_kind = source.graph.series_kind
        target.graph.columns = source.graph.columns.clone()
        target.graph.filters = {axis: flt.clone() for axis, flt in source.graph.filters.items()}
        self._rebuild_filters(target_id)
        logger.info(f"Settings copied from graph {source_id} to graph {target_id}",
                    extra=tagged("notice"))
        self.render(target_id)
        return True

    # ---- configuration mutators -------------------------------------------

    def set_title(self, graph_id: int, title: str) -> bool:
        record = self.registry.get(graph_id)
        if record is None:
            return False
        self.history.schedule_coalesced(graph_id)
        record.graph.title = title
        self.schedule_redraw(graph_id)
        return True

    def set_sheet(self, graph_id: int, sheet_name: str) -> bool:
        """Switch sheets: columns default to the new sheet's first three, filters reset."""
        record = self.registry.get(graph_id)
        if record is None:
            return False
        if not self.store.has(sheet_name):
            raise ValueError(f"Unknown sheet '{sheet_name}'")
        self.history.record_immediate(graph_id)
        graph = record.graph
        graph.sheet_name = sheet_name
        graph.columns = self._default_columns(sheet_name)
        for axis in AXES:
            graph.filters[axis].min = None
            graph.filters[axis].max = None
        self._rebuild_filters(graph_id)
        self.render(graph_id)
        return True

    def set_dimensionality(self, graph_id: int, dimensionality: str) -> bool:
        if dimensionality not in DIMENSIONALITIES:
            raise ValueError(
                f"Unknown dimensionality '{dimensionality}'. Expected one of {', '.join(DIMENSIONALITIES)}"
            )
        record = self.registry.get(graph_id)
        if record is None:
            return False
        self.history.record_immediate(graph_id)
        graph = record.graph
        switched = is_3d(graph.dimensionality) != is_3d(dimensionality)
        graph.dimensionality = dimensionality
        if switched or graph.series_kind not in valid_series_kinds(dimensionality):
            graph.series_kind = default_series_kind(dimensionality)
        self.render(graph_id)
        return True

    def set_series_kind(self, graph_id: int, kind: str) -> bool:
        record = self.registry.get(graph_id)
        if record is None:
            return False
        allowed = valid_series_kinds(record.graph.dimensionality)
        if kind not in allowed:
            raise ValueError(
                f"Series kind '{kind}' is not valid for {record.graph.dimensionality} graphs. "
                f"Expected one of {', '.join(allowed)}"
            )
        self.history.record_immediate(graph_id)
        record.graph.series_kind = kind
        self.render(graph_id)
        return True

    def set_column(self, graph_id: int, role: str, column: Optional[str]) -> bool:
        """Bind *column* to a role; x/y/z changes reset that axis's filter."""
        if role not in COLUMN_ROLES:
            raise ValueError(f"Unknown column role '{role}'. Expected one of {', '.join(COLUMN_ROLES)}")
        record = self.registry.get(graph_id)
        if record is None:
            return False
        graph = record.graph
        if column and column not in self.store.columns(graph.sheet_name):
            raise ValueError(f"Column '{column}' is not in sheet '{graph.sheet_name}'")
        self.history.record_immediate(graph_id)
        if role in ("x", "y"):
            setattr(graph.columns, role, column or "")
        else:
            setattr(graph.columns, role, column or None)
        if role in AXES:
            graph.filters[role].min = None
            graph.filters[role].max = None
            self._rebuild_filters(graph_id)
        self.render(graph_id)
        return True

    def set_filter_text(self, graph_id: int, axis: str, bound: str, text: str) -> bool:
        """Typed filter bound: slider follows, commit and redraw are coalesced."""
        _check_axis(axis)
        _check_bound(bound)
        record = self.registry.get(graph_id)
        if record is None:
            return False
        self.history.schedule_coalesced(graph_id)
        control = record.filters.controls[axis]
        control.set_text(bound, text)
        setattr(record.graph.filters[axis], bound, parse_float_or_none(text))
        self.schedule_redraw(graph_id)
        return True

    def drag_filter_slider(self, graph_id: int, axis: str, bound: str, value: float) -> Optional[float]:
        """Move a slider handle; only the text field follows until release."""
        _check_axis(axis)
        _check_bound(bound)
        record = self.registry.get(graph_id)
        if record is None:
            return None
        return record.filters.controls[axis].drag(bound, value)

    def release_filter_slider(self, graph_id: int, axis: str) -> bool:
        """Slider released: apply the text values to the filter and redraw."""
        _check_axis(axis)
        record = self.registry.get(graph_id)
        if record is None:
            return False
        self.history.schedule_coalesced(graph_id)
        low, high = record.filters.controls[axis].bounds()
        record.graph.filters[axis].min = low
        record.graph.filters[axis].max = high
        self.render(graph_id)
        return True

    def set_ignore_zero(self, graph_id: int, axis: str, ignore: bool) -> bool:
        _check_axis(axis)
        record = self.registry.get(graph_id)
        if record is None:
            return False
        self.history.record_immediate(graph_id)
        record.graph.filters[axis].ignore_zero = bool(ignore)
        self.render(graph_id)
        return True

    # ---- history -----------------------------------------------------------

    def undo(self, graph_id: int) -> bool:
        if not self.history.undo(graph_id):
            return False
        self._after_restore(graph_id)
        return True

    def redo(self, graph_id: int) -> bool:
        if not self.history.redo(graph_id):
            return False
        self._after_restore(graph_id)
        return True

    def can_undo(self, graph_id: int) -> bool:
        return self.history.can_undo(graph_id)

    def can_redo(self, graph_id: int) -> bool:
        return self.history.can_redo(graph_id)

    def _after_restore(self, graph_id: int) -> None:
        self.debouncer.cancel((graph_id, REDRAW_CONCERN))
        self._rebuild_filters(graph_id)
        self.render(graph_id)

    # ---- filter support ----------------------------------------------------

    def _rebuild_filters(self, graph_id: int) -> None:
        record = self.registry.get(graph_id)
        if record is None:
            return
        graph = record.graph
        record.filters.rebuild(self._rows(graph), graph.columns, graph.filters)

    def filter_control(self, graph_id: int, axis: str) -> Optional[AxisFilterControl]:
        _check_axis(axis)
        record = self.registry.get(graph_id)
        return record.filters.controls[axis] if record is not None else None

    def filter_range(self, graph_id: int, axis: str) -> Optional[AxisRange]:
        _check_axis(axis)
        record = self.registry.get(graph_id)
        return record.filters.ranges[axis] if record is not None else None

    def filter_label(self, graph_id: int, axis: str) -> Optional[str]:
        _check_axis(axis)
        graph = self.get_graph(graph_id)
        return filter_label(axis, graph.columns) if graph is not None else None

    def slider_visual(self, graph_id: int, axis: str) -> Optional[tuple[float, float]]:
        """(left, width) of an axis slider's selected span as fractions."""
        control = self.filter_control(graph_id, axis)
        return control.visual() if control is not None else None

    def filtered_rows(self, graph_id: int) -> list[dict]:
        graph = self.get_graph(graph_id)
        if graph is None:
            return []
        return filter_rows(self._rows(graph), graph)

    # ---- rendering ---------------------------------------------------------

    def observe_camera(self, graph_id: int, camera: Optional[dict]) -> None:
        """Remember the 3D viewpoint reported by the front end."""
        record = self.registry.get(graph_id)
        if record is not None:
            record.camera = dict(camera) if camera else None

    def render(self, graph_id: int) -> Optional[RenderResult]:
        """Build the figure now and hand it to ``on_render``."""
        record = self.registry.get(graph_id)
        if record is None:
            return None
        graph = record.graph
        camera = record.camera if graph.is_3d else None
        result = build_figure(graph, self._rows(graph), self.builder, camera)
        for warning in result.warnings:
            logger.info(f"Graph {graph_id}: {warning}", extra=tagged("notice"))
        if self.on_render is not None:
            self.on_render(graph_id, result)
        return result

    def schedule_redraw(self, graph_id: int) -> bool:
        """Redraw once the quiet period passes without another trigger."""
        if graph_id not in self.registry:
            return False
        self.debouncer.trigger(
            (graph_id, REDRAW_CONCERN),
            self.render_quiet_ms,
            lambda: self.render(graph_id),
        )
        return True

    # ---- overlays ----------------------------------------------------------

    def edit_overlays(self, graph_id: int):
        """Open an overlay editing transaction on a graph (None if unknown)."""
        from workspace.overlay_editor import OverlayEditor

        if graph_id not in self.registry:
            return None
        return OverlayEditor(self, graph_id)
