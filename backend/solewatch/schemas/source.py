"""Source definition schema, loaded from the sources JSON file."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from solewatch.schemas.deal import VALID_GENDERS, VALID_SHOE_TYPES


class SelectorConfig(BaseModel):
    """CSS selectors for a listing page. Only ``tile`` is required."""

    tile: str
    title: Optional[str] = None
    link: Optional[str] = None
    image: Optional[str] = None
    price: Optional[str] = None


class SourceDefinition(BaseModel):
    """One configured retailer source.

    ``urls`` may contain a ``{page}`` placeholder; listing sources then walk
    pages 1..max_pages and stop at the first page without tiles.
    """

    id: str = Field(..., min_length=1)
    type: Literal["json_feed", "listing_page"]
    store: str = Field(..., min_length=1)
    urls: List[str] = Field(..., min_length=1)
    base_url: Optional[str] = None
    fixed_gender: Optional[str] = None
    fixed_shoe_type: Optional[str] = None
    selectors: Optional[SelectorConfig] = None
    max_pages: Optional[int] = Field(None, ge=1)
    rate_limit_rpm: Optional[int] = Field(None, ge=1)

    @field_validator("fixed_gender")
    @classmethod
    def check_gender(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_GENDERS:
            raise ValueError(f"fixed_gender must be one of {sorted(VALID_GENDERS)}")
        return v

    @field_validator("fixed_shoe_type")
    @classmethod
    def check_shoe_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_SHOE_TYPES:
            raise ValueError(f"fixed_shoe_type must be one of {sorted(VALID_SHOE_TYPES)}")
        return v
