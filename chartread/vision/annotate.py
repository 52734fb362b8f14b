"""Chart annotation through an image-generation model.

Zones and labels only: no arrows, no projections, no targets.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from ..core.config import settings
from .client import ModelClient
from .prompt import build_annotation_prompt
from .schema import ChartRead

logger = logging.getLogger(__name__)


async def annotate_chart(
    image_base64: str,
    read: ChartRead,
    *,
    client: Optional[ModelClient],
    models: Optional[Sequence[str]] = None,
) -> Optional[str]:
    """Try each model variant in order; return the first inline image.

    Variants run one at a time. A variant that raises is logged and skipped.
    None means no annotation is available, which is not an error.
    """
    if client is None:
        return None

    prompt = build_annotation_prompt(read)

    for model in tuple(models if models is not None else settings.annotation_models):
        logger.info("Attempting annotation with %s", model)
        try:
            output = await client.generate_from_image(
                model, image_base64, prompt, want_image_output=True
            )
        except Exception as e:
            logger.warning("Model %s failed: %s: %s", model, type(e).__name__, e)
            continue

        if output.inline_image:
            logger.info("Annotated chart with %s", model)
            return output.inline_image
        logger.warning("Model %s returned no image", model)

    logger.warning("All annotation models failed")
    return None


class ChartAnnotator(Protocol):
    async def annotate(self, image_base64: str, read: ChartRead) -> Optional[str]:
        ...


class ModelAnnotator:
    def __init__(self, client: Optional[ModelClient], models: Optional[Sequence[str]] = None):
        self.client = client
        self.models = tuple(models) if models is not None else None

    async def annotate(self, image_base64: str, read: ChartRead) -> Optional[str]:
        return await annotate_chart(image_base64, read, client=self.client, models=self.models)


class FallbackAnnotator:
    """First annotator that produces an image wins."""

    def __init__(self, *annotators: ChartAnnotator):
        self.annotators = annotators

    async def annotate(self, image_base64: str, read: ChartRead) -> Optional[str]:
        for annotator in self.annotators:
            name = type(annotator).__name__
            try:
                image = await annotator.annotate(image_base64, read)
            except Exception as e:
                logger.warning("%s failed: %s: %s", name, type(e).__name__, e)
                continue
            if image:
                logger.info("Annotation produced by %s", name)
                return image
        return None
