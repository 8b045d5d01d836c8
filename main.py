#!/usr/bin/env python3
"""
graphdeck - Command-line entry point

Load a dataset, configure one graph and export the resulting figure.

Usage:
    python main.py --example --output ripple.html
    python main.py --data sheets.json --graph-config graph.json --output fig.json
    python main.py --example --verbose          # print a summary, log to console

Data file: JSON object mapping sheet name -> {"columns": [...], "rows": [...]}.

Graph config: JSON object with any of
    title, sheet, dimensionality, series_kind, hover_fields,
    disable_overlay_hover, columns {x, y, z, color},
    filters {axis: {min, max, ignore_zero}},
    overlays {points: [...], lines: [...], surfaces: [...]}
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from data_ops.filters import format_filter_value
from workspace.logging import log_error, setup_logging
from workspace.session import GraphSession

logger = logging.getLogger("graphdeck")

_OVERLAY_KEYS = (("points", "point"), ("lines", "line"), ("surfaces", "surface"))


def _read_json(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def apply_graph_config(session: GraphSession, graph_id: int, patch: dict) -> None:
    """Apply a JSON graph configuration through the session's own actions."""
    if "sheet" in patch:
        session.set_sheet(graph_id, patch["sheet"])
    if "dimensionality" in patch:
        session.set_dimensionality(graph_id, patch["dimensionality"])
    if "series_kind" in patch:
        session.set_series_kind(graph_id, patch["series_kind"])
    for role, column in patch.get("columns", {}).items():
        session.set_column(graph_id, role, column)
    for axis, flt in patch.get("filters", {}).items():
        for bound in ("min", "max"):
            if bound in flt:
                session.set_filter_text(graph_id, axis, bound, format_filter_value(flt[bound]))
        if "ignore_zero" in flt:
            session.set_ignore_zero(graph_id, axis, flt["ignore_zero"])
    if "title" in patch:
        session.set_title(graph_id, patch["title"])

    overlays = patch.get("overlays", {})
    if overlays or "hover_fields" in patch or "disable_overlay_hover" in patch:
        editor = session.edit_overlays(graph_id)
        for key, kind in _OVERLAY_KEYS:
            for spec in overlays.get(key, []):
                fields = dict(spec)
                vertices = fields.pop("points", [])
                editor.add(kind, **fields)
                index = len(editor.items(kind)) - 1
                for vertex in vertices:
                    if isinstance(vertex, dict):
                        editor.add_vertex(kind, index, **vertex)
                    else:
                        editor.add_vertex(kind, index, *vertex)
        if "hover_fields" in patch:
            editor.set_hover_fields(patch["hover_fields"])
        if "disable_overlay_hover" in patch:
            editor.set_disable_overlay_hover(patch["disable_overlay_hover"])
        editor.apply()


def write_figure(figure, output: str) -> Path:
    path = Path(output)
    if path.suffix.lower() == ".json":
        figure.write_json(str(path))
    else:
        figure.write_html(str(path), include_plotlyjs="cdn")
    return path


def main():
    """Build one figure from the command line."""
    parser = argparse.ArgumentParser(description="graphdeck - configurable 2D/3D graphs")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--example",
        action="store_true",
        help="Use the bundled Gaussian ripple dataset",
    )
    source.add_argument(
        "--data", "-d",
        default=None,
        help="JSON file mapping sheet names to {columns, rows}",
    )
    parser.add_argument(
        "--graph-config", "-g",
        default=None,
        help="JSON file with graph settings and overlays to apply",
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Write the figure to .html (default) or .json",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging on the console",
    )
    args = parser.parse_args()

    setup_logging(verbose=args.verbose)
    session = GraphSession()

    try:
        if args.example:
            graph = session.load_example()
        else:
            graph = session.load_dataset(_read_json(args.data))
            if graph is None:
                print("No sheets found in data file.")
                sys.exit(1)
        if args.graph_config:
            apply_graph_config(session, graph.id, _read_json(args.graph_config))
        # Commit any coalesced edits before the final render
        session.history.flush(graph.id)
        result = session.render(graph.id)
    except (OSError, json.JSONDecodeError, ValueError) as e:
        log_error("Failed to build figure", exc=e, context={"data": args.data, "config": args.graph_config})
        print(f"Error: {e}")
        sys.exit(1)

    print(f"{graph.display_title}: {result.row_count} row(s), traces: {', '.join(result.trace_names)}")
    for warning in result.warnings:
        print(f"  [WARNING] {warning}")

    if args.output:
        path = write_figure(result.figure, args.output)
        print(f"Figure written to {path}")


if __name__ == "__main__":
    main()
