from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from openai import AsyncOpenAI

from ..core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class ModelOutput:
    text: Optional[str] = None
    inline_image: Optional[str] = None   # unframed base64


class ModelClient(Protocol):
    """The only thing the engine needs from a model provider."""

    async def generate_from_image(
        self,
        model_id: str,
        image_base64: str,
        prompt: str,
        *,
        want_image_output: bool = False,
    ) -> ModelOutput:
        ...


def _to_data_url_png(image_base64: str) -> str:
    return f"data:image/png;base64,{image_base64}"


class OpenAIModelClient:
    """ModelClient over the OpenAI API.

    Text reads go through chat completions with the chart attached as an image
    URL. Image output goes through the image edit endpoint, which returns the
    redrawn chart as base64.
    """

    def __init__(self, api_key: str, *, openai_client: Optional[AsyncOpenAI] = None):
        self._client = openai_client or AsyncOpenAI(api_key=api_key)

    async def generate_from_image(
        self,
        model_id: str,
        image_base64: str,
        prompt: str,
        *,
        want_image_output: bool = False,
    ) -> ModelOutput:
        if want_image_output:
            return await self._edit_image(model_id, image_base64, prompt)

        resp = await self._client.chat.completions.create(
            model=model_id,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": _to_data_url_png(image_base64)}},
                    ],
                },
            ],
            temperature=0,
            response_format={"type": "json_object"},
        )
        return ModelOutput(text=resp.choices[0].message.content)

    async def _edit_image(self, model_id: str, image_base64: str, prompt: str) -> ModelOutput:
        png = base64.b64decode(image_base64)
        resp = await self._client.images.edit(
            model=model_id,
            image=("chart.png", png, "image/png"),
            prompt=prompt,
        )
        data = resp.data or []
        b64 = data[0].b64_json if data else None
        return ModelOutput(inline_image=b64 or None)


def build_model_client(settings: Settings) -> Optional[ModelClient]:
    """None when no API key is configured; callers report that as ConfigurationError."""
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; model client disabled")
        return None
    return OpenAIModelClient(settings.openai_api_key)
