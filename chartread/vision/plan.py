from __future__ import annotations

from typing import List

from .prompt import format_price
from .schema import AnnotationMark, AnnotationPlan, ChartRead, Theme

ZONE_WIDTH_PCT = 0.0075    # half-width of a level band, as a fraction of price
ZONE_OPACITY = 0.18


def _zone(role: str, price: float, width_pct: float) -> AnnotationMark:
    return AnnotationMark(
        type="zone",
        role=role,
        price=price,
        price_low=price * (1 - width_pct),
        price_high=price * (1 + width_pct),
        opacity=ZONE_OPACITY,
    )


def _label(role: str, price: float, text: str) -> AnnotationMark:
    return AnnotationMark(type="label", role=role, price=price, text=text)


def build_annotation_plan(
    read: ChartRead,
    theme: Theme = "dark",
    zone_width_pct: float = ZONE_WIDTH_PCT,
) -> AnnotationPlan:
    """Map a validated read onto drawing marks. Pure: same read, same plan."""
    marks: List[AnnotationMark] = []

    if read.support:
        p = read.support.price
        marks.append(_zone("support", p, zone_width_pct))
        marks.append(_label("support", p, f"Support ${format_price(p)}"))

    if read.resistance:
        p = read.resistance.price
        marks.append(_zone("resistance", p, zone_width_pct))
        marks.append(_label("resistance", p, f"Resistance ${format_price(p)}"))

    if read.pivot:
        p = read.pivot.price
        marks.append(AnnotationMark(type="line", role="other", price=p, style="dashed"))
        marks.append(_label("other", p, f"Pivot ${format_price(p)}"))

    cp = read.current_price
    marks.append(AnnotationMark(type="line", role="current_price", price=cp, style="dashed"))
    marks.append(_label("current_price", cp, f"Now ${format_price(cp)}"))

    return AnnotationPlan(marks=marks, theme=theme, story=read.story)
