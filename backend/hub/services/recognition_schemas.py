# Overview: Strict response schemas for the image-recognition collaborator.

from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from ..models.catalog import CATEGORIES, DEFAULT_CATEGORY

KIND_PRODUCT_EXTRACTION = "product-extraction"
KIND_SALE_EXTRACTION = "sale-extraction"
KIND_MALETA_EXTRACTION = "maleta-extraction"
KIND_MATCH_SUGGESTION = "match-suggestion"

RECOGNITION_KINDS = (
    KIND_PRODUCT_EXTRACTION,
    KIND_SALE_EXTRACTION,
    KIND_MALETA_EXTRACTION,
    KIND_MATCH_SUGGESTION,
)

MAX_SUGGESTIONS = 4


def coerce_category(value: Optional[str]) -> str:
    """Closed category set; anything else becomes the default category."""
    text = (value or "").strip().lower()
    for category in CATEGORIES:
        if category.lower() == text:
            return category
    return DEFAULT_CATEGORY


class RecognitionBaseModel(BaseModel):
    """Extra keys from the model are dropped; declared keys are type-checked."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


# ==================== ROWS ====================

class ExtractedProduct(RecognitionBaseModel):
    name: str = Field(..., min_length=1)
    code: Optional[str] = None
    price: float = Field(..., ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category: str = DEFAULT_CATEGORY

    @field_validator("category", mode="before")
    @classmethod
    def validate_category(cls, v):
        return coerce_category(v)


class ExtractedSale(RecognitionBaseModel):
    date: Optional[str] = None
    client: Optional[str] = None
    productName: str = Field(..., min_length=1)
    value: float = Field(..., ge=0)
    repName: Optional[str] = None
    category: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def validate_category(cls, v):
        return coerce_category(v)


class ExtractedMaletaItem(RecognitionBaseModel):
    productName: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    value: Optional[float] = Field(None, ge=0)


# ==================== TAGGED VARIANTS ====================

class ProductExtraction(RecognitionBaseModel):
    kind: Literal["product-extraction"]
    items: List[ExtractedProduct]


class SaleExtraction(RecognitionBaseModel):
    kind: Literal["sale-extraction"]
    items: List[ExtractedSale]


class MaletaExtraction(RecognitionBaseModel):
    kind: Literal["maleta-extraction"]
    items: List[ExtractedMaletaItem]


class MatchSuggestion(RecognitionBaseModel):
    kind: Literal["match-suggestion"]
    matchId: Optional[str] = None
    suggestionsIds: List[str] = Field(default_factory=list)
    reason: Optional[str] = None

    @field_validator("matchId", mode="before")
    @classmethod
    def validate_match_id(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("suggestionsIds", mode="before")
    @classmethod
    def validate_suggestions(cls, v):
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("suggestionsIds must be a list")
        return [str(i) for i in v][:MAX_SUGGESTIONS]


RecognitionResult = Annotated[
    Union[ProductExtraction, SaleExtraction, MaletaExtraction, MatchSuggestion],
    Field(discriminator="kind"),
]

recognition_result_adapter = TypeAdapter(RecognitionResult)


def wrap_payload(kind: str, payload) -> dict:
    """Tag the raw model output so the discriminated union can pick its variant."""
    if kind == KIND_MATCH_SUGGESTION:
        if not isinstance(payload, dict):
            raise ValueError("match suggestion must be a JSON object")
        return {**payload, "kind": kind}
    return {"kind": kind, "items": payload}
