"""
Viewport transform between canvas screen space and graph (flow) space.

A viewport ``{x, y, zoom}`` means the graph origin is drawn at screen
offset ``(x, y)`` and every graph unit is ``zoom`` pixels wide::

    screen = flow * zoom + offset
    flow   = (screen - offset) / zoom

Drops from the node palette arrive in screen space (relative to the
canvas bounds) and are converted here before ``add_node``.
"""

from __future__ import annotations

from typing import Optional

from automator.automator_model import Position, Viewport


def _check_zoom(viewport: Viewport) -> None:
    if viewport.zoom <= 0:
        raise ValueError(f"Viewport zoom must be positive, got {viewport.zoom}")


def screen_to_flow(
    point: Position,
    viewport: Viewport,
    snap_grid: Optional[int] = None,
) -> Position:
    """Map a screen-space point to graph space, optionally snapped."""
    _check_zoom(viewport)
    flow = Position(
        x=(point.x - viewport.x) / viewport.zoom,
        y=(point.y - viewport.y) / viewport.zoom,
    )
    if snap_grid:
        flow = snap_to_grid(flow, snap_grid)
    return flow


def flow_to_screen(point: Position, viewport: Viewport) -> Position:
    """Inverse of ``screen_to_flow`` (without snapping)."""
    _check_zoom(viewport)
    return Position(
        x=point.x * viewport.zoom + viewport.x,
        y=point.y * viewport.zoom + viewport.y,
    )


def snap_to_grid(point: Position, grid: int) -> Position:
    if grid <= 0:
        raise ValueError(f"Grid size must be positive, got {grid}")
    return Position(
        x=round(point.x / grid) * grid,
        y=round(point.y / grid) * grid,
    )


def zoom_around(viewport: Viewport, anchor: Position, zoom: float) -> Viewport:
    """Change zoom while keeping the screen point ``anchor`` fixed."""
    _check_zoom(viewport)
    if zoom <= 0:
        raise ValueError(f"Viewport zoom must be positive, got {zoom}")
    flow = screen_to_flow(anchor, viewport)
    return Viewport(
        x=anchor.x - flow.x * zoom,
        y=anchor.y - flow.y * zoom,
        zoom=zoom,
    )
