"""Canonical Deal schema.

Field names on the wire are camelCase and are a fixed contract for every
consumer of the catalog document (``listingURL`` and ``imageURL`` keep their
upper-case suffix).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Gender = Literal["mens", "womens", "unisex", "unknown"]
ShoeType = Literal["road", "trail", "track", "unknown"]

VALID_GENDERS = frozenset(["mens", "womens", "unisex", "unknown"])
VALID_SHOE_TYPES = frozenset(["road", "trail", "track", "unknown"])


class RejectionReason(str, Enum):
    """Why a raw record did not become a catalog deal."""

    MISSING_IDENTITY = "missing_identity"
    MISSING_PRICE = "missing_price"
    AMBIGUOUS_PRICE = "ambiguous_price"
    DISCOUNT_OUT_OF_RANGE = "discount_out_of_range"
    PRICE_OUT_OF_RANGE = "price_out_of_range"
    MISSING_IMAGE = "missing_image"
    CATEGORY_EXCLUDED = "category_excluded"
    INVALID_RECORD = "invalid_record"


class Deal(BaseModel):
    """A single normalized discount listing for a shoe at one retailer."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    listing_name: str
    brand: str
    model: str
    sale_price: Optional[float] = None
    original_price: Optional[float] = None
    discount_percent: Optional[int] = None
    sale_price_low: Optional[float] = None
    sale_price_high: Optional[float] = None
    original_price_low: Optional[float] = None
    original_price_high: Optional[float] = None
    discount_percent_up_to: Optional[int] = None
    store: str
    listing_url: Optional[str] = Field(None, alias="listingURL")
    image_url: Optional[str] = Field(None, alias="imageURL")
    gender: Gender = "unknown"
    shoe_type: ShoeType = "unknown"
    scraped_at: Optional[datetime] = None

    @property
    def is_range(self) -> bool:
        """True when the source reported a price range instead of one price."""
        return self.sale_price is None and self.sale_price_low is not None

    @property
    def effective_discount(self) -> int:
        """Discount used for ordering; range deals use their up-to figure."""
        if self.discount_percent is not None:
            return self.discount_percent
        if self.discount_percent_up_to is not None:
            return self.discount_percent_up_to
        return 0

    @property
    def effective_sale_price(self) -> Optional[float]:
        """Lowest price a shopper can pay."""
        return self.sale_price if self.sale_price is not None else self.sale_price_low

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the canonical camelCase JSON shape."""
        return self.model_dump(by_alias=True, mode="json")


# JSON Schema for one catalog deal. Used to validate every deal before it is
# written, and by tests to check the wire format.
DEAL_JSON_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": [
        "listingName",
        "brand",
        "model",
        "salePrice",
        "originalPrice",
        "discountPercent",
        "salePriceLow",
        "salePriceHigh",
        "originalPriceLow",
        "originalPriceHigh",
        "discountPercentUpTo",
        "store",
        "listingURL",
        "imageURL",
        "gender",
        "shoeType",
    ],
    "properties": {
        "listingName": {"type": "string"},
        "brand": {"type": "string"},
        "model": {"type": "string"},
        "salePrice": {"type": ["number", "null"]},
        "originalPrice": {"type": ["number", "null"]},
        "discountPercent": {"type": ["number", "null"]},
        "salePriceLow": {"type": ["number", "null"]},
        "salePriceHigh": {"type": ["number", "null"]},
        "originalPriceLow": {"type": ["number", "null"]},
        "originalPriceHigh": {"type": ["number", "null"]},
        "discountPercentUpTo": {"type": ["number", "null"]},
        "store": {"type": "string"},
        "listingURL": {"type": ["string", "null"]},
        "imageURL": {"type": ["string", "null"]},
        "gender": {"enum": sorted(VALID_GENDERS)},
        "shoeType": {"enum": sorted(VALID_SHOE_TYPES)},
        "scrapedAt": {"type": ["string", "null"]},
    },
}
