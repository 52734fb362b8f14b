import base64
import io

import pytest
from PIL import Image

from chartread.vision.client import ModelOutput


class StubModelClient:
    """ModelClient double: canned text, per-model images or per-model errors."""

    def __init__(self, text=None, images=None, errors=None):
        self.text = text
        self.images = images or {}
        self.errors = errors or {}
        self.calls = []

    async def generate_from_image(self, model_id, image_base64, prompt, *, want_image_output=False):
        self.calls.append({"model": model_id, "prompt": prompt, "want_image_output": want_image_output})
        if model_id in self.errors:
            raise self.errors[model_id]
        if want_image_output:
            return ModelOutput(inline_image=self.images.get(model_id))
        return ModelOutput(text=self.text)

    @property
    def models_called(self):
        return [c["model"] for c in self.calls]


@pytest.fixture
def stub_client_cls():
    return StubModelClient


@pytest.fixture
def range_payload():
    return {
        "story": "Price ranged $10–$20",
        "regime": "range",
        "support": {"price": 10, "label": "bounced 3x"},
        "resistance": {"price": 20, "label": "rejected twice"},
        "pivot": None,
        "currentPrice": 15,
        "watchAbove": "Above 20 = bullish",
        "watchBelow": "Below 10 = bearish",
        "confidence": "high",
        "confidenceReason": "clean range",
    }


def _png_bytes(width=800, height=400, color=(255, 255, 255)):
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def chart_png():
    return _png_bytes()


@pytest.fixture
def chart_b64(chart_png):
    return base64.b64encode(chart_png).decode("utf-8")


def pytest_make_parametrize_id(config, val, argname):
    # Ints past the str() digit limit cannot be rendered as test ids.
    if isinstance(val, int) and not isinstance(val, bool) and val.bit_length() > 4000:
        return f"{argname}-hugeint"
    return None
