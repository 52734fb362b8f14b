from __future__ import annotations

from typing import List, Optional, Literal, TypedDict

from pydantic import BaseModel, ConfigDict, Field

from .errors import ChartReadError

# ----------------------------
# Chart read (validated output)
# ----------------------------
Regime = Literal["uptrend", "downtrend", "range"]
Confidence = Literal["low", "medium", "high"]

REGIMES: tuple[str, ...] = ("uptrend", "downtrend", "range")
CONFIDENCES: tuple[str, ...] = ("low", "medium", "high")


class PriceLevel(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: float = Field(gt=0)
    label: str = Field(min_length=1)   # what happened there: "bounced 3x"


class ChartRead(BaseModel):
    """Validated market read. Only the validator builds these."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    story: str
    regime: Regime
    support: Optional[PriceLevel] = None
    resistance: Optional[PriceLevel] = None
    pivot: Optional[PriceLevel] = None     # bull/bear decision boundary
    current_price: float = Field(alias="currentPrice", gt=0)
    watch_above: str = Field(alias="watchAbove")
    watch_below: str = Field(alias="watchBelow")
    confidence: Confidence
    confidence_reason: str = Field(alias="confidenceReason")

    def levels(self) -> List[PriceLevel]:
        return [lv for lv in (self.support, self.resistance, self.pivot) if lv is not None]


class RawChartRead(TypedDict, total=False):
    """Model output before validation. Every value may be garbage."""

    story: object
    regime: object
    support: object
    resistance: object
    pivot: object
    currentPrice: object
    watchAbove: object
    watchBelow: object
    confidence: object
    confidenceReason: object


# ----------------------------
# Results
# ----------------------------
ErrorKind = Literal["configuration", "model", "empty_response", "parse", "validation", "image_load"]


class ValidationResult(BaseModel):
    valid: bool
    data: Optional[ChartRead] = None
    error: Optional[str] = None
    field: Optional[str] = None

    @classmethod
    def success(cls, data: ChartRead) -> "ValidationResult":
        return cls(valid=True, data=data)

    @classmethod
    def failure(cls, error: str, field: Optional[str] = None) -> "ValidationResult":
        return cls(valid=False, error=error, field=field)


class ChartReadResult(BaseModel):
    """Tagged outcome of one analysis call. Failures are values, not raises."""

    success: bool
    data: Optional[ChartRead] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    field: Optional[str] = None

    @classmethod
    def ok(cls, data: ChartRead) -> "ChartReadResult":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, exc: ChartReadError) -> "ChartReadResult":
        return cls(
            success=False,
            error=str(exc),
            error_kind=exc.kind,
            field=getattr(exc, "field", None),
        )


class AnnotatedRead(BaseModel):
    analysis: ChartReadResult
    annotated_image: Optional[str] = None   # unframed base64 PNG


# ----------------------------
# Overlay drawing plan
# ----------------------------
MarkType = Literal["zone", "line", "label"]
MarkRole = Literal["support", "resistance", "current_price", "other"]
LineStyle = Literal["solid", "dashed"]
Theme = Literal["dark", "light"]


class AnnotationMark(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: MarkType
    role: MarkRole
    price: Optional[float] = None
    price_low: Optional[float] = Field(default=None, alias="priceLow")
    price_high: Optional[float] = Field(default=None, alias="priceHigh")
    text: Optional[str] = None
    style: Optional[LineStyle] = None
    opacity: Optional[float] = Field(default=None, ge=0, le=1)


class AnnotationPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    marks: List[AnnotationMark] = Field(default_factory=list)
    theme: Theme = "dark"
    story: Optional[str] = None
