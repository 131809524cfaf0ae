"""Deal normalization service.

Turns one RawRecord from any source into either a canonical Deal or an
explicit rejection. Sources disagree on field names, price layout and URL
style; everything downstream of this module sees a single shape.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

import structlog

from solewatch.config import settings
from solewatch.schemas.alert import parse_timestamp
from solewatch.schemas.deal import VALID_GENDERS, VALID_SHOE_TYPES, Deal, RejectionReason
from solewatch.scrapers.base import RawRecord, SourceContext
from solewatch.scrapers.utils.normalizer import (
    PriceNormalizer,
    ShoeClassifier,
    absolutize_url,
    brand_pattern,
    clean_model,
    clean_title,
    is_placeholder_image,
    split_brand_model,
)

logger = structlog.get_logger(__name__)

NAME_FIELDS = ("listingName", "title", "name")
URL_FIELDS = ("listingURL", "url", "link", "href", "productUrl")
IMAGE_FIELDS = ("imageURL", "image", "imageUrl", "img")
ORIGINAL_PRICE_FIELDS = ("originalPrice", "compareAtPrice", "regularPrice", "listPrice")


@dataclass(frozen=True)
class NormalizationResult:
    """Either an accepted deal or the reason the record was dropped."""

    deal: Optional[Deal] = None
    reason: Optional[RejectionReason] = None
    detail: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.deal is not None

    @classmethod
    def reject(cls, reason: RejectionReason, detail: Optional[str] = None) -> "NormalizationResult":
        return cls(reason=reason, detail=detail)


def _first_text(data: Dict[str, Any], fields: Sequence[str]) -> Optional[str]:
    for field_name in fields:
        value = data.get(field_name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _first_price(data: Dict[str, Any], fields: Sequence[str]) -> Optional[float]:
    for field_name in fields:
        price = PriceNormalizer.to_price(data.get(field_name))
        if price is not None:
            return price
    return None


class DealNormalizer:
    """Converts raw source records into canonical deals.

    Rejections are returned, never raised, so one bad listing cannot sink a
    whole source.
    """

    def __init__(
        self,
        min_discount: int = settings.MIN_DISCOUNT_PERCENT,
        max_discount: int = settings.MAX_DISCOUNT_PERCENT,
        min_price: float = settings.MIN_PRICE,
        max_price: float = settings.MAX_PRICE,
    ):
        self.min_discount = min_discount
        self.max_discount = max_discount
        self.min_price = min_price
        self.max_price = max_price

    def normalize(
        self,
        raw: RawRecord,
        context: SourceContext,
        now: Optional[datetime] = None,
    ) -> NormalizationResult:
        """Normalize one raw record.

        Args:
            raw: Record as extracted by the source
            context: Store name, base URL and fixed labels of the source
            now: Merge run time, used as ``scrapedAt`` when the record has none

        Returns:
            NormalizationResult holding a Deal or a RejectionReason
        """
        try:
            return self._normalize(raw, context, now or datetime.now(timezone.utc))
        except (TypeError, ValueError, AttributeError) as e:
            # pydantic ValidationError subclasses ValueError
            logger.warning(
                "record_normalization_failed",
                source=context.source_id,
                error=str(e),
            )
            return NormalizationResult.reject(RejectionReason.INVALID_RECORD, str(e))

    def _normalize(
        self, raw: RawRecord, context: SourceContext, now: datetime
    ) -> NormalizationResult:
        data = raw.data
        if not isinstance(data, dict):
            return NormalizationResult.reject(RejectionReason.INVALID_RECORD, "record is not a mapping")

        # Identity
        listing_name = clean_title(_first_text(data, NAME_FIELDS))
        listing_url = absolutize_url(_first_text(data, URL_FIELDS), context.base_url)
        if not listing_name or not listing_url:
            return NormalizationResult.reject(RejectionReason.MISSING_IDENTITY)

        # Prices
        prices = self._resolve_prices(raw)
        if isinstance(prices, NormalizationResult):
            return prices

        # Category
        if ShoeClassifier.is_excluded(listing_name):
            return NormalizationResult.reject(RejectionReason.CATEGORY_EXCLUDED)

        image_url = absolutize_url(_first_text(data, IMAGE_FIELDS), context.base_url)
        if image_url is None or is_placeholder_image(image_url):
            return NormalizationResult.reject(RejectionReason.MISSING_IMAGE)

        brand, model = self._resolve_brand_model(listing_name, data)

        deal = Deal(
            listing_name=listing_name,
            brand=brand,
            model=model,
            store=_first_text(data, ("store",)) or context.store,
            listing_url=listing_url,
            image_url=image_url,
            gender=self._resolve_gender(data, context, listing_url, listing_name),
            shoe_type=self._resolve_shoe_type(data, context, f"{listing_name} {model}"),
            scraped_at=parse_timestamp(data.get("scrapedAt")) or now,
            **prices,
        )
        return NormalizationResult(deal=deal)

    def _resolve_prices(self, raw: RawRecord):
        """Return Deal price fields as a dict, or a rejection."""
        data = raw.data

        range_prices = self._resolve_range(data)
        if range_prices is not None:
            return range_prices

        if data.get("salePrice") is not None:
            sale = PriceNormalizer.to_price(data.get("salePrice"))
            original = _first_price(data, ("originalPrice", "price"))
        else:
            sale = PriceNormalizer.to_price(data.get("price"))
            original = _first_price(data, ORIGINAL_PRICE_FIELDS)

        if sale is None or original is None:
            if not (raw.price_text or raw.price_html):
                return NormalizationResult.reject(RejectionReason.MISSING_PRICE)
            extraction = PriceNormalizer.extract_from_text(
                raw.price_text,
                raw.price_html,
                min_discount=self.min_discount,
                max_discount=self.max_discount,
            )
            if not extraction.ok:
                return NormalizationResult.reject(extraction.failure)
            sale, original = extraction.sale_price, extraction.original_price

        return self._discrete(sale, original)

    def _discrete(self, sale: float, original: float):
        for price in (sale, original):
            if not self.min_price <= price <= self.max_price:
                return NormalizationResult.reject(
                    RejectionReason.PRICE_OUT_OF_RANGE, f"price {price} outside sane range"
                )
        if not sale < original:
            return NormalizationResult.reject(
                RejectionReason.DISCOUNT_OUT_OF_RANGE, "sale price is not below original price"
            )
        if not self._in_window(original, sale):
            return NormalizationResult.reject(
                RejectionReason.DISCOUNT_OUT_OF_RANGE, f"discount {sale}/{original}"
            )
        discount = PriceNormalizer.compute_discount_percent(original, sale)
        return {
            "sale_price": sale,
            "original_price": original,
            "discount_percent": discount,
        }

    def _in_window(self, original: float, sale: float) -> bool:
        return PriceNormalizer.discount_in_window(
            original, sale, self.min_discount, self.max_discount
        )

    def _resolve_range(self, data: Dict[str, Any]):
        """Range fields, or None when the record is not a range deal.

        A record whose low and high bounds agree is treated as a plain
        discrete price.
        """
        sale_low = PriceNormalizer.to_price(data.get("salePriceLow"))
        sale_high = PriceNormalizer.to_price(data.get("salePriceHigh"))
        orig_low = PriceNormalizer.to_price(data.get("originalPriceLow"))
        orig_high = PriceNormalizer.to_price(data.get("originalPriceHigh"))

        sale_low = sale_low if sale_low is not None else sale_high
        sale_high = sale_high if sale_high is not None else sale_low
        orig_low = orig_low if orig_low is not None else orig_high
        orig_high = orig_high if orig_high is not None else orig_low

        if sale_low is None or orig_high is None:
            return None
        if sale_low == sale_high and orig_low == orig_high:
            return self._discrete(sale_low, orig_low)

        for price in (sale_low, sale_high, orig_low, orig_high):
            if not self.min_price <= price <= self.max_price:
                return NormalizationResult.reject(
                    RejectionReason.PRICE_OUT_OF_RANGE, f"price {price} outside sane range"
                )
        if not sale_low < orig_high:
            return NormalizationResult.reject(
                RejectionReason.DISCOUNT_OUT_OF_RANGE, "sale range is not below original range"
            )
        if not self._in_window(orig_high, sale_low):
            return NormalizationResult.reject(
                RejectionReason.DISCOUNT_OUT_OF_RANGE, f"discount up to {sale_low}/{orig_high}"
            )
        up_to = PriceNormalizer.compute_discount_percent(orig_high, sale_low)
        return {
            "sale_price_low": min(sale_low, sale_high),
            "sale_price_high": max(sale_low, sale_high),
            "original_price_low": min(orig_low, orig_high),
            "original_price_high": max(orig_low, orig_high),
            "discount_percent_up_to": up_to,
        }

    @staticmethod
    def _resolve_brand_model(listing_name: str, data: Dict[str, Any]):
        brand, model = split_brand_model(listing_name)
        if brand != "Unknown":
            return brand, model

        raw_brand = data.get("brand")
        if isinstance(raw_brand, str) and raw_brand.strip() and raw_brand.strip() != "Unknown":
            raw_brand = raw_brand.strip()
            model = brand_pattern(raw_brand).sub(" ", listing_name, count=1)
            return raw_brand, clean_model(model)
        return brand, model

    @staticmethod
    def _resolve_gender(
        data: Dict[str, Any], context: SourceContext, url: str, text: str
    ) -> str:
        if context.fixed_gender in VALID_GENDERS:
            return context.fixed_gender
        label = data.get("gender")
        if label in VALID_GENDERS and label != "unknown":
            return label
        return ShoeClassifier.infer_gender(url, text)

    @staticmethod
    def _resolve_shoe_type(data: Dict[str, Any], context: SourceContext, text: str) -> str:
        if context.fixed_shoe_type in VALID_SHOE_TYPES:
            return context.fixed_shoe_type
        label = data.get("shoeType")
        if label in VALID_SHOE_TYPES and label != "unknown":
            return label
        return ShoeClassifier.infer_shoe_type(text)
