"""Drawing surfaces for the detection overlay."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

Color = tuple[int, int, int]


def _require_pillow() -> tuple[Any, Any, Any]:
    import importlib
    import importlib.util

    if importlib.util.find_spec("PIL") is None:
        raise RuntimeError("Pillow is required for PillowSurface")

    pil_image = importlib.import_module("PIL.Image")
    pil_draw = importlib.import_module("PIL.ImageDraw")
    pil_font = importlib.import_module("PIL.ImageFont")
    return pil_image, pil_draw, pil_font


class DrawSurface(Protocol):
    """Minimal 2D canvas the renderer issues draw calls against.

    Coordinates are frame pixels; ``alpha`` is in ``[0, 1]``; text is
    positioned by its top-left corner.
    """

    width: int
    height: int

    def clear(self) -> None: ...

    def stroke_rect(
        self, x: float, y: float, width: float, height: float, color: Color, alpha: float,
        line_width: int = 2,
    ) -> None: ...

    def fill_rect(
        self, x: float, y: float, width: float, height: float, color: Color, alpha: float
    ) -> None: ...

    def fill_text(self, text: str, x: float, y: float, color: Color, alpha: float) -> None: ...

    def measure_text(self, text: str) -> float: ...


def _corners(x: float, y: float, width: float, height: float) -> list[float]:
    x0, x1 = sorted((x, x + width))
    y0, y1 = sorted((y, y + height))
    return [x0, y0, x1, y1]


def _alpha_byte(alpha: float) -> int:
    return max(0, min(255, round(alpha * 255)))


class PillowSurface:
    """Transparent RGBA overlay backed by a Pillow image."""

    def __init__(self, width: int, height: int, *, font_size: int = 12) -> None:
        self._image_module, self._draw_module, font_module = _require_pillow()
        self.width = int(width)
        self.height = int(height)
        try:
            self._font = font_module.load_default(size=font_size)
        except TypeError:
            self._font = font_module.load_default()
        self.clear()

    @property
    def image(self) -> Any:
        return self._image

    def clear(self) -> None:
        self._image = self._image_module.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        self._draw = self._draw_module.Draw(self._image, "RGBA")

    def stroke_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        color: Color,
        alpha: float,
        line_width: int = 2,
    ) -> None:
        self._draw.rectangle(
            _corners(x, y, width, height),
            outline=(*color, _alpha_byte(alpha)),
            width=line_width,
        )

    def fill_rect(
        self, x: float, y: float, width: float, height: float, color: Color, alpha: float
    ) -> None:
        self._draw.rectangle(_corners(x, y, width, height), fill=(*color, _alpha_byte(alpha)))

    def fill_text(self, text: str, x: float, y: float, color: Color, alpha: float) -> None:
        self._draw.text((x, y), text, fill=(*color, _alpha_byte(alpha)), font=self._font)

    def measure_text(self, text: str) -> float:
        return float(self._draw.textlength(text, font=self._font))

    def save(self, path: Path) -> None:
        path = path.expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        self._image.save(path, format="PNG")
