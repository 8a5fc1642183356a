"""Overlay rendering package."""

from render.overlay import PALETTE, RenderedDetection, WindowedRenderer, class_color
from render.surface import DrawSurface, PillowSurface

__all__ = [
    "PALETTE",
    "DrawSurface",
    "PillowSurface",
    "RenderedDetection",
    "WindowedRenderer",
    "class_color",
]
