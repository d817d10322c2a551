"""
Pydantic models for the food analysis exchange.

Models:
  RemoteImageUrl / InlineImageBytes / Base64Image  - ImageReference variants
  AnalysisRequest   - JSON body sent to the analysis service
  FoodItem          - one recognised food with its nutrients
  AnalysisResult    - service response (items + service-computed totals)
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Values are kept exactly as the service sent them (int stays int, "95" stays
# "95") so the reply text shows "95 kcal", not "95.0 kcal".
Nutrient = Optional[Union[int, float, str]]

UNKNOWN_FOOD = "Unknown food"


# ---------------------------------------------------------------------------
# Image references
# ---------------------------------------------------------------------------

class RemoteImageUrl(BaseModel):
    """An image the analysis service (or the relay) can fetch over HTTP."""
    model_config = {"frozen": True}

    kind: Literal["url"] = "url"
    url: str


class InlineImageBytes(BaseModel):
    """Raw image bytes received directly from the caller."""
    model_config = {"frozen": True}

    kind: Literal["bytes"] = "bytes"
    content: bytes
    content_type: str = "application/octet-stream"


class Base64Image(BaseModel):
    """Image content already encoded as a plain base64 string (no data: prefix)."""
    model_config = {"frozen": True}

    kind: Literal["base64"] = "base64"
    data: str


ImageReference = Annotated[
    Union[RemoteImageUrl, InlineImageBytes, Base64Image],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Analysis service wire models
# ---------------------------------------------------------------------------

class AnalysisRequest(BaseModel):
    """
    Outbound request body. Exactly one of image_url / image_base64 is set;
    the client picks which from the deployment's transfer mode.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    image_base64: Optional[str] = Field(default=None, alias="imageBase64")
    user_name: str = Field(alias="userName")
    user_email: str = Field(alias="userEmail")

    def to_payload(self) -> dict:
        """Serialize with the service's camelCase names, omitting the unused image field."""
        return self.model_dump(by_alias=True, exclude_none=True)


class FoodItem(BaseModel):
    """One food the service recognised in the photo."""
    model_config = {"extra": "ignore"}

    name: str = UNKNOWN_FOOD
    portion: Optional[Union[int, float, str]] = None
    calories: Nutrient = None
    protein: Nutrient = None
    carbs: Nutrient = None
    fat: Nutrient = None

    @field_validator("name", mode="before")
    @classmethod
    def default_blank_name(cls, v: Any) -> Any:
        """A null or blank name falls back to UNKNOWN_FOOD; other scalars become text."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return UNKNOWN_FOOD
        if isinstance(v, (int, float)):
            return str(v)
        return v


class AnalysisResult(BaseModel):
    """
    Analysis service response.

    Totals are computed by the service and relayed untouched; the relay never
    sums the items itself.
    """
    model_config = {"extra": "ignore"}

    foods: Optional[list[FoodItem]] = None
    total_calories: Nutrient = None
    total_protein: Nutrient = None
    total_carbs: Nutrient = None
    total_fat: Nutrient = None
