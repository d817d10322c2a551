"""
Reply formatter tests.

Pure-function tests: no I/O, no mocks.
"""

import re

import pytest

from food_relay.models.analysis import AnalysisResult
from food_relay.services.analysis_client import (
    AnalysisServiceRejected,
    AnalysisServiceUnavailable,
    ImageTransferNotSupported,
)
from food_relay.services.reply_formatter import (
    NO_IMAGE_TEXT,
    build_analysis_card,
    failure_reply,
    failure_text,
    format_analysis_text,
    format_reply,
    text_reply,
)


def _result(foods=None, **totals) -> AnalysisResult:
    data = {
        "foods": foods,
        "total_calories": 95,
        "total_protein": 0.5,
        "total_carbs": 25,
        "total_fat": 0.3,
    }
    data.update(totals)
    return AnalysisResult.model_validate(data)


APPLE = {"name": "Apple", "portion": "1 medium", "calories": 95, "protein": 0.5, "carbs": 25, "fat": 0.3}
RICE = {"name": "Rice", "portion": "1 cup", "calories": 206, "protein": 4.3, "carbs": 45, "fat": 0.4}
EGG = {"name": "Egg", "portion": "1 large", "calories": 78, "protein": 6.3, "carbs": 0.6, "fat": 5.3}


# ===========================================================================
# Text
# ===========================================================================

class TestFormatAnalysisText:

    def test_apple_scenario(self):
        text = format_analysis_text(_result([APPLE]))

        assert "1. Apple" in text
        assert "Portion: 1 medium" in text
        assert "Calories: 95 kcal | Protein: 0.5g | Carbs: 25g | Fat: 0.3g" in text

        totals = text.split("---", 1)[1]
        assert "95 kcal" in totals
        assert "0.5g" in totals
        assert "25g" in totals
        assert "0.3g" in totals

    @pytest.mark.parametrize("n", [0, 1, 3])
    def test_n_item_blocks_then_one_totals_block(self, n):
        foods = [APPLE, RICE, EGG][:n]
        text = format_analysis_text(_result(foods))

        numbered = re.findall(r"\*\*(\d+)\. ([^*]+)\*\*", text)
        assert numbered == [(str(i), f["name"]) for i, f in enumerate(foods, start=1)]
        assert text.count("Portion:") == n
        assert text.count("Total Nutrition") == 1
        assert text.index("Total Nutrition") > max(
            [text.index(f"{i}. ") for i in range(1, n + 1)] or [0]
        )

    def test_items_keep_service_order(self):
        text = format_analysis_text(_result([EGG, APPLE, RICE]))
        assert text.index("1. Egg") < text.index("2. Apple") < text.index("3. Rice")

    def test_null_foods_still_renders_totals(self):
        text = format_analysis_text(_result(None))
        assert "Portion:" not in text
        assert "🔥 Calories: 95 kcal" in text

    def test_totals_are_relayed_not_recomputed(self):
        text = format_analysis_text(_result([APPLE, RICE], total_calories=999))
        assert "🔥 Calories: 999 kcal" in text

    def test_missing_values_render_as_placeholder(self):
        result = AnalysisResult.model_validate({"foods": [{"name": "Mystery"}]})
        text = format_analysis_text(result)
        assert "Portion: ?" in text
        assert "Calories: ? kcal" in text
        assert "🥑 Fat: ?g" in text

    @pytest.mark.parametrize("food, expected", [
        ({"name": "Apple", "portion": 1}, "Portion: 1\n"),
        ({"name": "Apple", "portion": 0}, "Portion: 0\n"),
        ({"name": "Apple", "portion": 1.5}, "Portion: 1.5\n"),
        ({"name": None, "portion": "1 bowl"}, "**1. Unknown food**"),
        ({"name": "  ", "portion": "1 bowl"}, "**1. Unknown food**"),
        ({"name": "Apple", "calories": "95"}, "Calories: 95 kcal"),
        ({"name": "Apple", "protein": "0.50"}, "Protein: 0.50g"),
    ])
    def test_loosely_typed_food_fields_render_as_received(self, food, expected):
        result = AnalysisResult.model_validate({"foods": [food], "total_calories": "95"})
        text = format_analysis_text(result)
        assert expected in text
        assert "🔥 Calories: 95 kcal" in text

    def test_formatting_is_deterministic(self):
        result = _result([APPLE, RICE])
        assert format_analysis_text(result) == format_analysis_text(result.model_copy(deep=True))


# ===========================================================================
# Card
# ===========================================================================

class TestBuildAnalysisCard:

    def test_card_mirrors_items_and_totals(self):
        card = build_analysis_card(_result([APPLE, RICE]))

        assert card.title == "Nutritional Analysis Results"
        items, totals = card.sections
        assert [e.text.split("\n")[0] for e in items.elements] == [
            "**Apple** (1 medium)",
            "**Rice** (1 cup)",
        ]
        assert totals.title == "Total Nutrition"
        assert "**95 kcal**" in totals.elements[0].text

    def test_card_with_no_foods(self):
        card = build_analysis_card(_result([]))
        assert card.sections[0].elements == []
        assert len(card.sections[1].elements) == 1

    def test_card_body_omits_untitled_section_title(self):
        body = format_reply(_result([APPLE]), include_card=True).to_body()
        assert "title" not in body["card"]["sections"][0]
        assert body["card"]["sections"][1]["title"] == "Total Nutrition"


# ===========================================================================
# Reply builders
# ===========================================================================

class TestReplies:

    def test_format_reply_without_card(self):
        body = format_reply(_result([APPLE])).to_body()
        assert set(body) == {"text"}

    def test_text_reply_with_bot_name(self):
        body = text_reply(NO_IMAGE_TEXT, bot_name="Calorie Scanner").to_body()
        assert body == {"text": NO_IMAGE_TEXT, "bot": {"name": "Calorie Scanner"}}

    def test_unavailable_failure_mentions_cold_start(self):
        text = failure_text(AnalysisServiceUnavailable("Could not reach the analysis service"))
        assert text.startswith("❌ Sorry, I couldn't analyze the image.")
        assert "Could not reach the analysis service" in text
        assert "waking up" in text

    def test_rejected_failure_suggests_clearer_photo(self):
        error = AnalysisServiceRejected("rejected", status_code=422, detail={"error": "blurry"})
        text = failure_reply(error).text
        assert "HTTP 422" in text
        assert "blurry" in text
        assert "clearer image" in text

    def test_transfer_failure_suggests_image_link(self):
        text = failure_text(ImageTransferNotSupported("file uploads are not enabled"))
        assert "image link" in text
