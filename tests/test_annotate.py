import pytest

from chartread.vision.annotate import FallbackAnnotator, ModelAnnotator, annotate_chart
from chartread.vision.validate import validate

VARIANTS = ("variant-1", "variant-2", "variant-3")


@pytest.fixture
def read(range_payload):
    return validate(range_payload).data


@pytest.mark.asyncio
async def test_falls_back_and_stops_at_first_image(stub_client_cls, read, chart_b64):
    client = stub_client_cls(
        errors={"variant-1": RuntimeError("model not found")},
        images={"variant-2": "djI=", "variant-3": "djM="},
    )

    image = await annotate_chart(chart_b64, read, client=client, models=VARIANTS)

    assert image == "djI="
    assert client.models_called == ["variant-1", "variant-2"]


@pytest.mark.asyncio
async def test_variant_without_image_moves_on(stub_client_cls, read, chart_b64):
    client = stub_client_cls(images={"variant-3": "djM="})

    image = await annotate_chart(chart_b64, read, client=client, models=VARIANTS)

    assert image == "djM="
    assert client.models_called == list(VARIANTS)


@pytest.mark.asyncio
async def test_all_variants_exhausted_returns_none(stub_client_cls, read, chart_b64):
    client = stub_client_cls(errors={m: RuntimeError("down") for m in VARIANTS})

    assert await annotate_chart(chart_b64, read, client=client, models=VARIANTS) is None
    assert client.models_called == list(VARIANTS)


@pytest.mark.asyncio
async def test_no_client_returns_none(read, chart_b64):
    assert await annotate_chart(chart_b64, read, client=None, models=VARIANTS) is None


@pytest.mark.asyncio
async def test_requests_image_output_with_brief(stub_client_cls, read, chart_b64):
    client = stub_client_cls(images={"variant-1": "djE="})

    await annotate_chart(chart_b64, read, client=client, models=VARIANTS)

    call = client.calls[0]
    assert call["want_image_output"] is True
    assert "GREEN horizontal zone at $10" in call["prompt"]
    assert "RED horizontal zone at $20" in call["prompt"]


@pytest.mark.asyncio
async def test_model_annotator_uses_its_variants(stub_client_cls, read, chart_b64):
    client = stub_client_cls(images={"variant-2": "djI="})
    annotator = ModelAnnotator(client, ["variant-2"])

    assert await annotator.annotate(chart_b64, read) == "djI="
    assert client.models_called == ["variant-2"]


class _Fixed:
    def __init__(self, image=None, error=None):
        self.image = image
        self.error = error
        self.called = False

    async def annotate(self, image_base64, read):
        self.called = True
        if self.error:
            raise self.error
        return self.image


@pytest.mark.asyncio
async def test_fallback_annotator_takes_first_image(read, chart_b64):
    first, second, third = _Fixed(), _Fixed(image="Mg=="), _Fixed(image="Mw==")

    image = await FallbackAnnotator(first, second, third).annotate(chart_b64, read)

    assert image == "Mg=="
    assert first.called and second.called
    assert not third.called


@pytest.mark.asyncio
async def test_fallback_annotator_skips_raising_annotator(read, chart_b64):
    broken, good = _Fixed(error=RuntimeError("x")), _Fixed(image="b2s=")

    assert await FallbackAnnotator(broken, good).annotate(chart_b64, read) == "b2s="


@pytest.mark.asyncio
async def test_fallback_annotator_all_empty(read, chart_b64):
    assert await FallbackAnnotator(_Fixed(), _Fixed()).annotate(chart_b64, read) is None
