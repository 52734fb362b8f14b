from chartread.vision.prompt import (
    CHART_READ_PROMPT,
    JSON_DIRECTIVE,
    build_annotation_brief,
    build_annotation_prompt,
    build_chart_read_prompt,
    format_price,
)
from chartread.vision.validate import validate


def _tail(prompt):
    return prompt[prompt.index(JSON_DIRECTIVE):]


def test_no_question_returns_base_prompt():
    assert build_chart_read_prompt() == CHART_READ_PROMPT
    assert build_chart_read_prompt("   ") == CHART_READ_PROMPT


def test_question_goes_before_json_directive():
    prompt = build_chart_read_prompt("Is this a bull flag?")

    assert "USER QUESTION: Is this a bull flag?" in prompt
    assert prompt.index("USER QUESTION") < prompt.index(JSON_DIRECTIVE)
    # the prompt still ends with the JSON instruction and shape
    assert _tail(prompt) == _tail(CHART_READ_PROMPT)
    assert prompt.rstrip().endswith("}")


def test_prompt_building_is_deterministic():
    assert build_chart_read_prompt("why?") == build_chart_read_prompt("why?")


def test_json_shape_lists_every_field():
    tail = _tail(CHART_READ_PROMPT)
    for key in (
        "story", "regime", "support", "resistance", "pivot", "currentPrice",
        "watchAbove", "watchBelow", "confidence", "confidenceReason",
    ):
        assert f'"{key}"' in tail


def test_format_price():
    assert format_price(10.0) == "10"
    assert format_price(1234.5) == "1234.5"
    assert format_price(0.000123) == "0.000123"


def test_brief_lists_levels_with_colors(range_payload):
    payload = dict(range_payload, pivot={"price": 15.5, "label": "mid"})
    read = validate(payload).data
    brief = build_annotation_brief(read)

    assert "Current price: $15" in brief
    assert "GREEN horizontal zone at $10 (Support: bounced 3x)" in brief
    assert "RED horizontal zone at $20 (Resistance: rejected twice)" in brief
    assert "BLUE dashed line at $15.5 (Pivot: mid)" in brief
    assert "No clear levels" not in brief


def test_brief_without_levels_says_so(range_payload):
    payload = dict(range_payload, support=None, resistance=None, pivot=None)
    brief = build_annotation_brief(validate(payload).data)

    assert "No clear levels identified" in brief
    assert "GREEN" not in brief


def test_annotation_prompt_has_brief_story_and_constraints(range_payload):
    read = validate(range_payload).data
    prompt = build_annotation_prompt(read)

    assert build_annotation_brief(read) in prompt
    assert "STORY: Price ranged $10–$20" in prompt
    assert "DO NOT draw arrows" in prompt
    assert "DO NOT add price targets" in prompt
    assert "Candles must stay clearly visible" in prompt
