from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError as PydanticValidationError

from chartread.core.config import Settings, _split_models
from chartread.vision.client import OpenAIModelClient, build_model_client


def _mock_openai(text=None, b64_images=()):
    openai = MagicMock()
    openai.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=text))]
        )
    )
    openai.images.edit = AsyncMock(
        return_value=SimpleNamespace(data=[SimpleNamespace(b64_json=b) for b in b64_images])
    )
    return openai


@pytest.mark.asyncio
async def test_text_read_sends_prompt_and_image(chart_b64):
    openai = _mock_openai(text='{"story": "x"}')
    client = OpenAIModelClient("sk-test", openai_client=openai)

    out = await client.generate_from_image("vision-x", chart_b64, "read this")

    assert out.text == '{"story": "x"}'
    assert out.inline_image is None
    kwargs = openai.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "vision-x"
    assert kwargs["temperature"] == 0
    assert kwargs["response_format"] == {"type": "json_object"}
    text_part, image_part = kwargs["messages"][0]["content"]
    assert text_part == {"type": "text", "text": "read this"}
    assert image_part["image_url"]["url"] == f"data:image/png;base64,{chart_b64}"
    openai.images.edit.assert_not_called()


@pytest.mark.asyncio
async def test_image_output_uses_image_edit(chart_b64, chart_png):
    openai = _mock_openai(b64_images=["aW1n"])
    client = OpenAIModelClient("sk-test", openai_client=openai)

    out = await client.generate_from_image("image-x", chart_b64, "draw", want_image_output=True)

    assert out.inline_image == "aW1n"
    kwargs = openai.images.edit.await_args.kwargs
    assert kwargs["model"] == "image-x"
    assert kwargs["prompt"] == "draw"
    assert kwargs["image"] == ("chart.png", chart_png, "image/png")
    openai.chat.completions.create.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("images", [(), (None,), ("",)])
async def test_image_edit_without_data_gives_no_image(chart_b64, images):
    client = OpenAIModelClient("sk-test", openai_client=_mock_openai(b64_images=images))

    out = await client.generate_from_image("image-x", chart_b64, "draw", want_image_output=True)

    assert out.inline_image is None


@pytest.mark.asyncio
async def test_provider_errors_propagate(chart_b64):
    openai = _mock_openai()
    openai.chat.completions.create.side_effect = RuntimeError("rate limited")
    client = OpenAIModelClient("sk-test", openai_client=openai)

    with pytest.raises(RuntimeError, match="rate limited"):
        await client.generate_from_image("vision-x", chart_b64, "read")


def test_build_model_client_needs_key():
    assert build_model_client(Settings(openai_api_key="")) is None
    assert isinstance(build_model_client(Settings(openai_api_key="sk-test")), OpenAIModelClient)


def test_split_models():
    assert _split_models(" a, b ,,c ") == ("a", "b", "c")
    assert _split_models("") == ()


def test_overlay_theme_must_be_known():
    assert Settings(overlay_theme="light").overlay_theme == "light"
    with pytest.raises(PydanticValidationError):
        Settings(overlay_theme="Dark")
