"""
Reply formatter.

Renders an AnalysisResult into the chat reply text (and, for platforms that
render rich cards, a card carrying the same content). Formatting is a pure
function of its input: nutrient values are interpolated exactly as the
analysis service sent them, with no rounding or unit conversion and no recomputed
totals.

Text layout:

    🍽️ **Food Analysis Complete!**

    **1. Apple**
    Portion: 1 medium
    Calories: 95 kcal | Protein: 0.5g | Carbs: 25g | Fat: 0.3g

    ---
    **📊 Total Nutrition:**
    🔥 Calories: 95 kcal
    💪 Protein: 0.5g
    🌾 Carbs: 25g
    🥑 Fat: 0.3g
"""

from typing import Optional

from food_relay.models.analysis import AnalysisResult, FoodItem
from food_relay.models.reply import (
    CardElement,
    CardSection,
    ReplyBot,
    ReplyCard,
    ReplyMessage,
)
from food_relay.services.analysis_client import (
    AnalysisError,
    AnalysisServiceUnavailable,
    ImageTransferNotSupported,
)

# ---------------------------------------------------------------------------
# Fixed reply texts
# ---------------------------------------------------------------------------

NO_IMAGE_TEXT = "📸 Please upload an image of your food to analyze its calories!"
MISSING_IMAGE_URL_TEXT = "❌ Could not get image URL. Please try uploading again."
ANALYZING_TEXT = "🔍 Analyzing your food image... Please wait a moment."

_HEADER = "🍽️ **Food Analysis Complete!**"
_CARD_TITLE = "Nutritional Analysis Results"

_COLD_START_HINT = (
    "⏳ The analysis servers might be waking up. "
    "Please wait a minute and try again."
)
_CLEARER_PHOTO_HINT = "Please try again with a clearer image."
_UPLOAD_LINK_HINT = "Please share the photo as an image link instead."

# Rendered in place of a nutrient the service did not report
_MISSING = "?"


def _num(value) -> str:
    if value is None or value == "":
        return _MISSING
    return str(value)


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def _food_block(index: int, food: FoodItem) -> str:
    return (
        f"**{index}. {food.name}**\n"
        f"Portion: {_num(food.portion)}\n"
        f"Calories: {_num(food.calories)} kcal | Protein: {_num(food.protein)}g | "
        f"Carbs: {_num(food.carbs)}g | Fat: {_num(food.fat)}g"
    )


def _totals_block(result: AnalysisResult) -> str:
    return (
        "**📊 Total Nutrition:**\n"
        f"🔥 Calories: {_num(result.total_calories)} kcal\n"
        f"💪 Protein: {_num(result.total_protein)}g\n"
        f"🌾 Carbs: {_num(result.total_carbs)}g\n"
        f"🥑 Fat: {_num(result.total_fat)}g"
    )


def format_analysis_text(result: AnalysisResult) -> str:
    """
    Render the text reply: one 1-indexed block per food in service order,
    then exactly one totals block. A null or empty food list renders no item
    blocks but still renders the totals.
    """
    foods = result.foods or []
    blocks = [_HEADER]
    blocks.extend(_food_block(i, food) for i, food in enumerate(foods, start=1))
    blocks.append("---\n" + _totals_block(result))
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Card
# ---------------------------------------------------------------------------

def build_analysis_card(result: AnalysisResult) -> ReplyCard:
    """Card mirroring the text reply: an items section and a totals section."""
    foods = result.foods or []
    item_elements = [
        CardElement(
            text=(
                f"**{food.name}** ({_num(food.portion)})\n"
                f"Calories: {_num(food.calories)} kcal | P: {_num(food.protein)}g | "
                f"C: {_num(food.carbs)}g | F: {_num(food.fat)}g"
            )
        )
        for food in foods
    ]
    totals_element = CardElement(
        text=(
            f"🔥 **{_num(result.total_calories)} kcal** | "
            f"💪 {_num(result.total_protein)}g protein | "
            f"🌾 {_num(result.total_carbs)}g carbs | "
            f"🥑 {_num(result.total_fat)}g fat"
        )
    )
    return ReplyCard(
        title=_CARD_TITLE,
        sections=[
            CardSection(id=1, elements=item_elements),
            CardSection(id=2, title="Total Nutrition", elements=[totals_element]),
        ],
    )


# ---------------------------------------------------------------------------
# Reply builders
# ---------------------------------------------------------------------------

def _bot(bot_name: Optional[str]) -> Optional[ReplyBot]:
    return ReplyBot(name=bot_name) if bot_name else None


def format_reply(
    result: AnalysisResult,
    include_card: bool = False,
    bot_name: Optional[str] = None,
) -> ReplyMessage:
    return ReplyMessage(
        text=format_analysis_text(result),
        card=build_analysis_card(result) if include_card else None,
        bot=_bot(bot_name),
    )


def text_reply(text: str, bot_name: Optional[str] = None) -> ReplyMessage:
    """Reply carrying only a fixed text (upload prompt, acknowledgement, ...)."""
    return ReplyMessage(text=text, bot=_bot(bot_name))


def failure_text(error: AnalysisError) -> str:
    """
    User-facing explanation of a failed analysis.

    Unreachable / timed-out services get the cold-start hint; everything else
    suggests a clearer photo.
    """
    if isinstance(error, AnalysisServiceUnavailable):
        hint = _COLD_START_HINT
    elif isinstance(error, ImageTransferNotSupported):
        hint = _UPLOAD_LINK_HINT
    else:
        hint = _CLEARER_PHOTO_HINT
    return f"❌ Sorry, I couldn't analyze the image. Error: {error.describe()}\n\n{hint}"


def failure_reply(error: AnalysisError, bot_name: Optional[str] = None) -> ReplyMessage:
    return ReplyMessage(text=failure_text(error), bot=_bot(bot_name))
