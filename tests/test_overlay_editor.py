"""
Tests for workspace.overlay_editor - overlay editing transactions.
"""

import pytest

from workspace.models import DIM_3D
from workspace.overlay_editor import OverlayEditorClosed
from workspace.session import GraphSession

SHEETS = {
    "Main": {
        "columns": ["x", "y", "z", "name", "extra"],
        "rows": [{"x": i, "y": i * i, "z": -i, "name": f"p{i}", "extra": 1} for i in range(5)],
    },
}


@pytest.fixture
def rendered():
    return []


@pytest.fixture
def session(rendered):
    s = GraphSession(on_render=lambda gid, result: rendered.append(result))
    s.load_dataset(SHEETS)
    return s


class TestEditing:
    def test_defaults_and_naming(self, session):
        editor = session.edit_overlays(1)
        first = editor.add_point()
        second = editor.add_point(x=3, symbol="star")
        line = editor.add_line()
        surface = editor.add_surface()
        assert (first.name, second.name) == ("Point 1", "Point 2")
        assert second.x == 3 and second.symbol == "star"
        assert line.name == "Line 1" and line.mode == "equation"
        assert surface.opacity == 0.7 and surface.surface_equation.variable == "z"

    def test_nested_update(self, session):
        editor = session.edit_overlays(1)
        editor.add_line(equation={"y": "2*x"})
        assert session.get_graph(1).overlay_lines[0].equation.y == "2*x"

    def test_invalid_values(self, session):
        editor = session.edit_overlays(1)
        editor.add_point()
        with pytest.raises(ValueError):
            editor.update("point", 0, symbol="hexagon")
        with pytest.raises(ValueError):
            editor.update("point", 0, mode="points")
        with pytest.raises(ValueError):
            editor.update("point", 0, bogus=1)
        with pytest.raises(ValueError):
            editor.add("polygon")
        with pytest.raises(IndexError):
            editor.remove("point", 5)

    def test_vertices(self, session):
        editor = session.edit_overlays(1)
        editor.add_line(mode="points")
        editor.add_vertex("line", 0, 0, 0)
        editor.add_vertex("line", 0, 1, 1)
        editor.update_vertex("line", 0, 1, "y", 5)
        points = session.get_graph(1).overlay_lines[0].points
        assert [(p.x, p.y) for p in points] == [(0, 0), (1, 5)]
        editor.remove_vertex("line", 0, 0)
        assert len(points) == 1

    def test_edits_do_not_redraw_until_apply(self, session, rendered):
        rendered.clear()
        editor = session.edit_overlays(1)
        editor.add_point(name="P")
        assert rendered == []
        result = editor.apply()
        assert rendered == [result]
        assert "P" in result.trace_names


class TestTransaction:
    def test_apply_is_one_undo_step(self, session):
        editor = session.edit_overlays(1)
        editor.add_point()
        editor.add_line(equation={"y": "x"})
        editor.set_disable_overlay_hover(True)
        editor.apply()
        graph = session.get_graph(1)
        assert len(graph.overlay_points) == 1
        assert session.undo(1)
        assert graph.overlay_points == [] and graph.overlay_lines == []
        assert graph.disable_overlay_hover is False
        assert not session.can_undo(1)
        session.redo(1)
        assert len(graph.overlay_lines) == 1
        assert graph.disable_overlay_hover is True

    def test_discard_restores_open_state(self, session):
        editor = session.edit_overlays(1)
        editor.add_point(name="keep")
        editor.apply()

        editor = session.edit_overlays(1)
        editor.update("point", 0, name="changed")
        editor.add_surface()
        editor.discard()
        graph = session.get_graph(1)
        assert [p.name for p in graph.overlay_points] == ["keep"]
        assert graph.overlay_surfaces == []

    def test_close_keeps_edits_without_history(self, session):
        editor = session.edit_overlays(1)
        editor.add_point()
        editor.close()
        assert len(session.get_graph(1).overlay_points) == 1
        assert not session.can_undo(1)
        with pytest.raises(OverlayEditorClosed):
            editor.add_point()

    def test_context_manager_applies(self, session):
        with session.edit_overlays(1) as editor:
            editor.add_point()
        assert session.can_undo(1)

    def test_context_manager_discards_on_error(self, session):
        with pytest.raises(RuntimeError):
            with session.edit_overlays(1) as editor:
                editor.add_point()
                raise RuntimeError("boom")
        assert session.get_graph(1).overlay_points == []


class TestVisibilityAndHover:
    def test_visibility_redraws_immediately(self, session, rendered):
        editor = session.edit_overlays(1)
        editor.add_point(name="P")
        editor.add_point(name="Q")
        rendered.clear()
        result = editor.set_visible("point", 0, False)
        assert rendered == [result]
        assert result.trace_names == ["Graph 1", "Q"]
        result = editor.set_all_visible("point", False)
        assert result.trace_names == ["Graph 1"]

    def test_hover_fields_follow_sheet_order(self, session):
        editor = session.edit_overlays(1)
        selected = editor.set_hover_fields(["extra", "nope", "name"])
        assert selected == ["name", "extra"]
        assert session.get_graph(1).hover_fields == ["name", "extra"]

    def test_surfaces_ignored_on_2d(self, session):
        editor = session.edit_overlays(1)
        editor.add_surface(surface_equation={"expression": "x + y"})
        assert "Surface 1" not in editor.apply().trace_names
        session.set_dimensionality(1, DIM_3D)
        assert "Surface 1" in session.render(1).trace_names

    def test_failing_overlay_reported(self, session):
        editor = session.edit_overlays(1)
        editor.add_line(name="Broken", equation={"y": "foo(x)"})
        result = editor.apply()
        assert result.warnings == [
            'Error in overlay line "Broken": Invalid expression "foo(x)": unknown function \'foo\'. '
            'Use * for multiplication (e.g., "x*y" not "xy").'
        ]
