from __future__ import annotations

from typing import Optional

from .schema import ChartRead

JSON_DIRECTIVE = "Respond with ONLY valid JSON"

CHART_READ_PROMPT = """You are reading a trading chart screenshot. Give an objective read of the price action.

Cover:

1. STORY (1-2 sentences, start with "Price...")
   What happened on this chart: any major pump or crash, the current trend or consolidation,
   and the most recent significant move.
   Example: "Price pumped to $50 in late November, crashed back to $5, and has been ranging between $10 and $20."

2. REGIME
   - "uptrend" = higher highs and higher lows
   - "downtrend" = lower highs and lower lows
   - "range" = price bouncing between levels

3. KEY LEVELS (only when clearly visible)
   - support: where price BOUNCED (price + what happened there)
   - resistance: where price was REJECTED (price + what happened there)
   - pivot: the decision level between bulls and bears
   Only use levels with visible price reactions. If there is no clear level, use null.

4. CURRENT PRICE
   Read the latest price from the chart.

5. WHAT TO WATCH
   - watchAbove: what it means if price breaks or holds above a key level
   - watchBelow: what it means if price breaks below a key level
   Phrase these as conditionals, never as predictions:
   "Above $20 with hold = bullish structure confirmed"
   "Below $10 = breakdown, bearish"

6. CONFIDENCE
   - "high" = clean structure, obvious levels, multiple touches
   - "medium" = decent structure with some noise
   - "low" = choppy, unclear or limited data
   Give a short reason.

Rules:
- Never use the current price itself as a level.
- Never give price targets.
- Be honest about confidence. If the structure is unclear, say so.

Respond with ONLY valid JSON (no markdown, no code fences) matching exactly this shape:

{
  "story": "<1-2 sentences starting with 'Price...'>",
  "regime": "<'uptrend'|'downtrend'|'range'>",
  "support": { "price": <number>, "label": "<what happened>" } or null,
  "resistance": { "price": <number>, "label": "<what happened>" } or null,
  "pivot": { "price": <number>, "label": "<why it matters>" } or null,
  "currentPrice": <number>,
  "watchAbove": "<conditional: above X = Y>",
  "watchBelow": "<conditional: below X = Y>",
  "confidence": "<'low'|'medium'|'high'>",
  "confidenceReason": "<short reason>"
}"""


def build_chart_read_prompt(user_question: Optional[str] = None) -> str:
    """Insert the user's question right before the JSON directive."""
    question = (user_question or "").strip()
    if not question:
        return CHART_READ_PROMPT
    return CHART_READ_PROMPT.replace(
        JSON_DIRECTIVE,
        f"USER QUESTION: {question}\n\n{JSON_DIRECTIVE}",
        1,
    )


def format_price(price: float) -> str:
    # 10.0 -> "10", 0.000123 -> "0.000123", 1234.5 -> "1234.5"
    return ("%.8f" % float(price)).rstrip("0").rstrip(".")


def build_annotation_brief(read: ChartRead) -> str:
    lines = [
        f"Current price: ${format_price(read.current_price)}",
        f"Regime: {read.regime}",
        "",
        "LEVELS TO DRAW:",
    ]

    if read.support:
        lines.append(
            f"- GREEN horizontal zone at ${format_price(read.support.price)} (Support: {read.support.label})"
        )
    if read.resistance:
        lines.append(
            f"- RED horizontal zone at ${format_price(read.resistance.price)} (Resistance: {read.resistance.label})"
        )
    if read.pivot:
        lines.append(
            f"- BLUE dashed line at ${format_price(read.pivot.price)} (Pivot: {read.pivot.label})"
        )

    if not (read.support or read.resistance or read.pivot):
        lines.append("- No clear levels identified. Only mark the current price area.")

    return "\n".join(lines)


def build_annotation_prompt(read: ChartRead) -> str:
    return f"""You are a professional chart markup artist. Edit this trading chart by adding clean annotations.

ANNOTATION BRIEF:
{build_annotation_brief(read)}

STORY: {read.story}

DRAWING RULES:
1. Support is a semi-transparent GREEN horizontal band (a zone, not a line)
2. Resistance is a semi-transparent RED horizontal band (a zone, not a line)
3. Pivot is a thin BLUE dashed horizontal line
4. Put small labels near the right edge: "Support", "Resistance", "Pivot"
5. Zones should be wide enough to cover the wick clusters (about 1-2% of price)

CRITICAL:
- DO NOT draw arrows or projections
- DO NOT draw diagonal lines into the future
- DO NOT add price targets or predictions
- ONLY draw horizontal zones and lines at the listed levels
- Keep it clean and minimal
- Candles must stay clearly visible through the zones

OUTPUT:
Return the annotated chart image with the overlays applied."""
