"""Figure assembly and overlay geometry."""

from .plotly_renderer import (
    RenderResult,
    build_figure,
    build_layout,
    build_main_trace,
)
from .overlays import OverlayBuilder, OverlayBuildError

__all__ = [
    "RenderResult",
    "build_figure",
    "build_layout",
    "build_main_trace",
    "OverlayBuilder",
    "OverlayBuildError",
]
