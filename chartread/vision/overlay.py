"""Deterministic chart overlay: draws an AnnotationPlan onto the chart with Pillow.

No model call. Used when no image model is configured or every image model
failed, or when the caller simply wants a reproducible markup.

The source is a flat screenshot, so the plotting area is estimated from fixed
margins and prices are projected linearly onto it.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from .errors import ImageLoadError
from .plan import build_annotation_plan
from .schema import AnnotationMark, AnnotationPlan, ChartRead, Theme

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]

# plotting area as fractions of the image: y-axis labels left, price axis
# right, header on top, dates at the bottom
AREA_LEFT = 0.08
AREA_RIGHT = 0.92
AREA_TOP = 0.05
AREA_BOTTOM = 0.88

PRICE_PADDING = 0.15
DEFAULT_PRICE_RANGE = (0.0, 100.0)

STORY_MAX_CHARS = 100      # longer stories are not drawn at all
STORY_VISIBLE_CHARS = 80

DASH = (6, 4)
ZONE_ALPHA = 38            # ~0.15, for roles without a zone colour


def _c(r: int, g: int, b: int, a: float) -> RGBA:
    return (r, g, b, round(a * 255))


COLORS: Dict[str, Dict[str, RGBA]] = {
    "dark": {
        "support": _c(34, 197, 94, 0.8),
        "support_zone": _c(34, 197, 94, 0.15),
        "resistance": _c(239, 68, 68, 0.8),
        "resistance_zone": _c(239, 68, 68, 0.15),
        "current_price": _c(250, 204, 21, 0.9),
        "pivot": _c(59, 130, 246, 0.9),
        "label": _c(255, 255, 255, 0.95),
        "label_bg": _c(0, 0, 0, 0.7),
    },
    "light": {
        "support": _c(22, 163, 74, 0.9),
        "support_zone": _c(22, 163, 74, 0.12),
        "resistance": _c(220, 38, 38, 0.9),
        "resistance_zone": _c(220, 38, 38, 0.12),
        "current_price": _c(202, 138, 4, 0.9),
        "pivot": _c(37, 99, 235, 0.9),
        "label": _c(0, 0, 0, 0.9),
        "label_bg": _c(255, 255, 255, 0.85),
    },
}


@dataclass(frozen=True)
class ChartArea:
    left: float
    right: float
    top: float
    bottom: float

    @classmethod
    def for_size(cls, width: int, height: int) -> "ChartArea":
        return cls(
            left=width * AREA_LEFT,
            right=width * AREA_RIGHT,
            top=height * AREA_TOP,
            bottom=height * AREA_BOTTOM,
        )

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top


@dataclass(frozen=True)
class PriceRange:
    low: float
    high: float


def price_range_for(read: ChartRead) -> PriceRange:
    """Current price plus every level price, padded 15% of the spread each side."""
    prices = [p for p in [read.current_price, *(lv.price for lv in read.levels())] if p > 0]
    if not prices:
        return PriceRange(*DEFAULT_PRICE_RANGE)

    lo, hi = min(prices), max(prices)
    pad = (hi - lo) * PRICE_PADDING
    return PriceRange(lo - pad, hi + pad)


def to_y(price: float, area: ChartArea, prange: PriceRange) -> float:
    """Linear price -> pixel row. Higher prices map to smaller y."""
    span = (prange.high - prange.low) or 1.0
    return area.bottom - ((price - prange.low) / span) * area.height


def zone_bounds(mark: AnnotationMark, area: ChartArea, prange: PriceRange) -> Tuple[float, float]:
    """(top, bottom) pixel rows of a zone mark."""
    y1 = to_y(mark.price_high or mark.price or 0, area, prange)
    y2 = to_y(mark.price_low or mark.price or 0, area, prange)
    return min(y1, y2), max(y1, y2)


# ----------------------------
# Drawing
# ----------------------------
def _font(size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.load_default(size=size)


def _role_color(role: str, colors: Dict[str, RGBA]) -> RGBA:
    if role == "current_price":
        return colors["current_price"]
    if role == "support":
        return colors["support"]
    if role == "resistance":
        return colors["resistance"]
    return colors["pivot"]


def _hline(draw: ImageDraw.ImageDraw, area: ChartArea, y: float, color: RGBA, *, dashed: bool = False) -> None:
    y = round(y)
    if not dashed:
        draw.line([(area.left, y), (area.right, y)], fill=color, width=2)
        return
    on, off = DASH
    x = area.left
    while x < area.right:
        draw.line([(x, y), (min(x + on, area.right), y)], fill=color, width=2)
        x += on + off


def _draw_zone(draw, mark, area, prange, colors) -> None:
    top, bottom = zone_bounds(mark, area, prange)
    line_color = _role_color(mark.role, colors)
    fill = colors.get(f"{mark.role}_zone", line_color[:3] + (ZONE_ALPHA,))
    if mark.opacity is not None:
        fill = fill[:3] + (round(mark.opacity * 255),)

    draw.rectangle([area.left, top, area.right, bottom], fill=fill)
    _hline(draw, area, (top + bottom) / 2, line_color)


def _draw_line(draw, mark, area, prange, colors) -> None:
    y = to_y(mark.price or 0, area, prange)
    _hline(draw, area, y, _role_color(mark.role, colors), dashed=mark.style == "dashed")


def _draw_label(draw, mark, area, prange, colors) -> None:
    y = to_y(mark.price or 0, area, prange)
    text = mark.text or ""
    font = _font(11)
    width = draw.textlength(text, font=font)

    x = area.right - width - 20
    draw.rectangle([x - 4, y - 10, x + width + 4, y + 6], fill=colors["label_bg"])
    if mark.role in ("support", "resistance"):
        color = colors[mark.role]
    else:
        color = colors["label"]
    draw.text((x, y + 2), text, fill=color, font=font, anchor="ls")


_DRAWERS: Dict[str, Callable] = {
    "zone": _draw_zone,
    "line": _draw_line,
    "label": _draw_label,
}


def caption_text(story: Optional[str]) -> Optional[str]:
    if not story or len(story) >= STORY_MAX_CHARS:
        return None
    if len(story) > STORY_VISIBLE_CHARS:
        return story[:STORY_VISIBLE_CHARS] + "..."
    return story


def _draw_caption(draw: ImageDraw.ImageDraw, text: str, area: ChartArea, colors: Dict[str, RGBA]) -> None:
    font = _font(13)
    width = min(draw.textlength(text, font=font), area.width - 40)
    draw.rectangle(
        [area.left + 10, area.top + 10, area.left + 26 + width, area.top + 32],
        fill=colors["label_bg"],
    )
    draw.text((area.left + 18, area.top + 25), text, fill=colors["label"], font=font, anchor="ls")


def draw_plan(image: Image.Image, plan: AnnotationPlan, read: ChartRead) -> Image.Image:
    """Paint every mark in plan order onto a copy of ``image``. Later marks cover earlier ones."""
    canvas = image.convert("RGB")
    draw = ImageDraw.Draw(canvas, "RGBA")

    area = ChartArea.for_size(*canvas.size)
    prange = price_range_for(read)
    colors = COLORS.get(plan.theme, COLORS["dark"])

    logger.debug("Rendering %d marks on %dx%d canvas", len(plan.marks), *canvas.size)
    for mark in plan.marks:
        _DRAWERS[mark.type](draw, mark, area, prange, colors)

    caption = caption_text(plan.story)
    if caption:
        _draw_caption(draw, caption, area, colors)

    return canvas


# ----------------------------
# Encode / decode
# ----------------------------
def _strip_data_url(image_base64: str) -> str:
    if image_base64.startswith("data:") and "," in image_base64:
        return image_base64.split(",", 1)[1]
    return image_base64


def load_image(image_base64: str) -> Image.Image:
    try:
        raw = base64.b64decode(_strip_data_url(image_base64))
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (binascii.Error, ValueError, UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise ImageLoadError(f"Failed to load image: {e}") from e
    return img


def to_data_url_png(png_bytes: bytes) -> str:
    b64 = base64.b64encode(png_bytes).decode("utf-8")
    return f"data:image/png;base64,{b64}"


def _render_png(image_base64: str, plan: AnnotationPlan, read: ChartRead) -> bytes:
    canvas = draw_plan(load_image(image_base64), plan, read)
    out = io.BytesIO()
    canvas.save(out, format="PNG")
    return out.getvalue()


async def render_overlay(
    image_base64: str,
    plan: AnnotationPlan,
    read: ChartRead,
    *,
    on_complete: Optional[Callable[[str], None]] = None,
) -> str:
    """Annotated chart as a PNG data URL. Raises ImageLoadError if the image can't be decoded."""
    png = await asyncio.to_thread(_render_png, image_base64, plan, read)
    data_url = to_data_url_png(png)
    if on_complete is not None:
        on_complete(data_url)
    return data_url


class OverlayAnnotator:
    """ChartAnnotator that draws locally instead of asking a model."""

    def __init__(self, theme: Theme = "dark"):
        self.theme = theme

    async def annotate(self, image_base64: str, read: ChartRead) -> Optional[str]:
        plan = build_annotation_plan(read, theme=self.theme)
        data_url = await render_overlay(image_base64, plan, read)
        return _strip_data_url(data_url)
