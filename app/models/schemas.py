"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict, ValidationInfo, field_validator, model_validator
from typing import Any, ClassVar, Dict, List, Optional, Tuple
from datetime import datetime
from enum import Enum


class GenerationMode(str, Enum):
    """Advisory generation mode sent by the generate page."""

    FULL = "full"
    PREVIEW = "preview"


# Kit request
class KitRequest(BaseModel):
    """
    Inputs describing the customer and the kit to generate.

    Every field is optional at the schema level so that the route can answer
    a missing field with its own plain-text 400 instead of a 422.
    """

    product_slug: Optional[str] = Field(None, alias="productSlug")
    product_name: Optional[str] = Field(None, alias="productName")
    business_name: Optional[str] = Field(None, alias="businessName")
    industry: Optional[str] = None
    state: Optional[str] = None
    employees: Optional[str] = None
    risks: Optional[str] = None
    mode: Optional[GenerationMode] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = (
        "product_slug", "product_name", "business_name", "industry", "state",
    )
    OPTIONAL_FIELDS: ClassVar[Tuple[str, ...]] = ("employees", "risks")

    @field_validator(
        "product_slug", "product_name", "business_name",
        "industry", "state", "employees", "risks",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        if value is not None and info.field_name in cls.OPTIONAL_FIELDS:
            # lists, objects: dropped rather than rejected
            return None
        return value

    @field_validator("mode", mode="before")
    @classmethod
    def _unknown_mode_is_absent(cls, value: Any) -> Any:
        if value not in (None, GenerationMode.FULL.value, GenerationMode.PREVIEW.value):
            return None
        return value

    def missing_fields(self) -> List[str]:
        """Return the aliases of required fields that are absent or blank."""
        missing = []
        for name in self.REQUIRED_FIELDS:
            if not getattr(self, name):
                missing.append(type(self).model_fields[name].alias or name)
        return missing


# Outline Schemas
class OutlineSection(BaseModel):
    """One titled section of a generated outline."""

    title: str
    description: Optional[str] = None
    items: Optional[List[str]] = None

    model_config = ConfigDict(extra="allow")


class OutlinePlan(BaseModel):
    """
    Structured outline returned by the language model.

    All fields are optional; a present field must match its declared shape.
    Extra keys produced by the model are carried through untouched.
    """

    summary: Optional[str] = None
    sections: Optional[List[OutlineSection]] = None
    implementation: Optional[str] = None
    notes: Optional[str] = None
    disclaimer: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class KitResponse(OutlinePlan):
    """Outline fields flattened at top level plus the encoded document."""

    docx_base64: str = Field(..., alias="docxBase64")
    filename: str

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """JSON body as sent to the browser: camelCase, absent fields omitted."""
        return self.model_dump(by_alias=True, exclude_unset=True)


# Catalog Schemas
class Product(BaseModel):
    """A kit offered in the catalog (``products.json`` entry)."""

    slug: str = Field(..., min_length=1)
    name: str
    badge: Optional[str] = None
    price: Optional[str] = None
    description: Optional[str] = None
    checkout_url: Optional[str] = Field(None, alias="checkoutUrl")
    preview_bullets: List[str] = Field(default_factory=list, alias="previewBullets")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _fold_aliases(cls, data: Any) -> Any:
        """Accept the older catalog spellings used by earlier page variants."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "price" not in data and "priceDisplay" in data:
            data["price"] = data["priceDisplay"]
        if "description" not in data and "shortDescription" in data:
            data["description"] = data["shortDescription"]
        if "checkoutUrl" not in data:
            for key in ("stripeUrl", "purchaseUrl"):
                if key in data:
                    data["checkoutUrl"] = data[key]
                    break
        if isinstance(data.get("price"), (int, float)):
            data["price"] = str(data["price"])
        return data


class KitPreviewResponse(BaseModel):
    """Free "try before you buy" preview of a kit."""

    slug: Optional[str] = None
    name: str
    bullets: List[str] = []
    message: str


# Health Schemas
class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str
    llm_configured: bool
    products: int
    timestamp: datetime
