from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from ..core.config import settings
from .annotate import ChartAnnotator, ModelAnnotator
from .client import ModelClient
from .errors import (
    ChartReadError,
    ConfigurationError,
    EmptyResponseError,
    ModelError,
    ParseError,
    ValidationError,
)
from .prompt import build_chart_read_prompt
from .schema import AnnotatedRead, ChartRead, ChartReadResult
from .validate import validate

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def _strip_code_fences(text: str) -> str:
    """Contents of the first fenced block if there is one, else the text as-is."""
    match = _FENCE_RE.search(text)
    if not match:
        return text
    return match.group(1).strip()


def _parse_json(text: str) -> Any:
    try:
        return json.loads(_strip_code_fences(text))
    # oversized number literals raise ValueError, deep nesting RecursionError
    except (ValueError, RecursionError) as e:
        raise ParseError("Failed to parse model response as JSON", raw_text=text) from e


async def _read_chart(
    client: Optional[ModelClient],
    image_base64: str,
    user_question: Optional[str],
    model: str,
) -> ChartRead:
    if client is None:
        raise ConfigurationError("AI client not configured")

    prompt = build_chart_read_prompt(user_question)

    logger.info("Analyzing chart with %s", model)
    try:
        output = await client.generate_from_image(model, image_base64, prompt)
    except Exception as e:
        raise ModelError(str(e) or type(e).__name__) from e

    text = (output.text or "").strip()
    if not text:
        raise EmptyResponseError("Empty response from model")

    try:
        parsed = _parse_json(text)
    except ParseError as e:
        logger.error("JSON parse error: %s | raw response: %s", e.__cause__, e.raw_text)
        raise

    result = validate(parsed)
    if not result.valid:
        raise ValidationError(result.error, result.field)
    return result.data


async def analyze_chart(
    image_base64: str,
    user_question: Optional[str] = None,
    *,
    client: Optional[ModelClient],
    model: Optional[str] = None,
) -> ChartReadResult:
    """Chart image -> validated ChartRead, as a tagged result.

    One model call, no retries. Any failure comes back as ``success=False``
    with ``error_kind`` set; nothing is raised past this function except
    ``ValueError`` for an empty image.
    """
    if not image_base64:
        raise ValueError("image_base64 is empty")

    try:
        read = await _read_chart(client, image_base64, user_question, model or settings.vision_model)
    except ValidationError as e:
        logger.warning("Validation failed on %s: %s", e.field, e.reason)
        return ChartReadResult.failed(e)
    except ChartReadError as e:
        logger.error("Analysis failed (%s): %s", e.kind, e)
        return ChartReadResult.failed(e)

    logger.info("Analysis complete: %s", read.story)
    return ChartReadResult.ok(read)


async def analyze_and_annotate(
    image_base64: str,
    user_question: Optional[str] = None,
    *,
    client: Optional[ModelClient],
    model: Optional[str] = None,
    annotator: Optional[ChartAnnotator] = None,
) -> AnnotatedRead:
    """Analyze, then annotate only if the read is valid.

    Annotation never fails the call: a missing or broken annotation just
    leaves ``annotated_image`` as None next to the good analysis.
    """
    analysis = await analyze_chart(image_base64, user_question, client=client, model=model)
    if not analysis.success:
        return AnnotatedRead(analysis=analysis)

    annotator = annotator or ModelAnnotator(client)
    try:
        image = await annotator.annotate(image_base64, analysis.data)
    except Exception as e:
        logger.warning("Annotation failed: %s: %s", type(e).__name__, e)
        image = None

    return AnnotatedRead(analysis=analysis, annotated_image=image)
