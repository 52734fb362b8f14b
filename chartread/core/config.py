import os
from typing import Tuple

from pydantic import BaseModel, Field

from ..vision.schema import Theme


def _split_models(raw: str) -> Tuple[str, ...]:
    return tuple(m.strip() for m in raw.split(",") if m.strip())


class Settings(BaseModel):
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    vision_model: str = os.getenv("VISION_MODEL", "gpt-4o-mini")

    # tried strictly in this order, first image wins
    annotation_models: Tuple[str, ...] = _split_models(
        os.getenv("ANNOTATION_MODELS", "gpt-image-1,gpt-image-1-mini")
    )

    overlay_theme: Theme = Field(default=os.getenv("OVERLAY_THEME", "dark"), validate_default=True)
    vision_timeout_sec: float = float(os.getenv("VISION_TIMEOUT_SEC", "25"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
