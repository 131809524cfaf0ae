"""Tests for DealNormalizer: raw source records to canonical deals."""

from datetime import datetime, timezone

import pytest

from solewatch.schemas.deal import RejectionReason
from solewatch.scrapers.base import RawRecord, SourceContext
from solewatch.services.deal_normalizer import DealNormalizer

GHOST_URL = "https://www.runningwarehouse.com/Brooks_Ghost_15/descpage-BG15M1.html"
GHOST_IMAGE = "https://img.runningwarehouse.com/watermark/rs.php?path=BG15M1-1.jpg"


@pytest.fixture
def normalizer():
    return DealNormalizer(min_discount=5, max_discount=90, min_price=10, max_price=1000)


def ghost_record(**overrides):
    data = {
        "title": "Brooks Ghost 15 Men's",
        "salePrice": 95,
        "originalPrice": 160,
        "url": GHOST_URL,
        "image": GHOST_IMAGE,
    }
    data.update(overrides)
    return RawRecord(data=data)


# ============================================================================
# TESTS: STRUCTURED RECORDS
# ============================================================================

class TestStructuredRecords:
    """Tests for records that carry numeric price fields."""

    def test_accepts_discounted_listing(self, normalizer, context, now):
        result = normalizer.normalize(ghost_record(), context, now=now)

        assert result.accepted
        deal = result.deal
        assert deal.brand == "Brooks"
        assert deal.model == "Ghost 15"
        assert deal.listing_name == "Brooks Ghost 15 Men's"
        assert deal.sale_price == 95.0
        assert deal.original_price == 160.0
        assert deal.discount_percent == 41
        assert deal.gender == "mens"
        assert deal.shoe_type == "road"
        assert deal.store == "Running Warehouse"
        assert deal.listing_url == GHOST_URL
        assert deal.image_url == GHOST_IMAGE
        assert deal.scraped_at == now

    def test_rejects_full_price_listing(self, normalizer, context):
        record = RawRecord(
            data={
                "title": "Brooks Ghost 15 Men's",
                "price": 160,
                "originalPrice": 160,
                "url": GHOST_URL,
                "image": GHOST_IMAGE,
            }
        )
        result = normalizer.normalize(record, context)
        assert not result.accepted
        assert result.reason == RejectionReason.DISCOUNT_OUT_OF_RANGE

    def test_price_field_with_compare_at(self, normalizer, context):
        record = ghost_record(salePrice=None, originalPrice=None, price="$99.95", compareAtPrice="140.00")
        result = normalizer.normalize(record, context)
        assert result.deal.sale_price == 99.95
        assert result.deal.original_price == 140.0

    def test_sale_price_with_price_as_original(self, normalizer, context):
        record = ghost_record(originalPrice=None, price=150)
        result = normalizer.normalize(record, context)
        assert result.deal.original_price == 150.0

    def test_discount_above_window_rejected(self, normalizer, context):
        result = normalizer.normalize(ghost_record(salePrice=12, originalPrice=160), context)
        assert result.reason == RejectionReason.DISCOUNT_OUT_OF_RANGE

    def test_price_out_of_range(self, normalizer, context):
        result = normalizer.normalize(ghost_record(salePrice=1200, originalPrice=1500), context)
        assert result.reason == RejectionReason.PRICE_OUT_OF_RANGE

    def test_missing_price(self, normalizer, context):
        result = normalizer.normalize(ghost_record(salePrice=None, originalPrice=None), context)
        assert result.reason == RejectionReason.MISSING_PRICE

    def test_record_labels_are_kept(self, normalizer, context):
        record = ghost_record(
            title="Brooks Ghost 15",
            gender="womens",
            shoeType="trail",
            store="Brooks Outlet",
            scrapedAt="2026-02-27T08:00:00Z",
        )
        deal = normalizer.normalize(record, context).deal
        assert deal.gender == "womens"
        assert deal.shoe_type == "trail"
        assert deal.store == "Brooks Outlet"
        assert deal.scraped_at == datetime(2026, 2, 27, 8, 0, tzinfo=timezone.utc)

    def test_unknown_labels_fall_through_to_inference(self, normalizer, context):
        deal = normalizer.normalize(ghost_record(gender="unknown", shoeType="unknown"), context).deal
        assert deal.gender == "mens"
        assert deal.shoe_type == "road"

    def test_fixed_source_labels_win(self, normalizer):
        context = SourceContext(
            source_id="holabird-womens-trail",
            store="Holabird Sports",
            fixed_gender="womens",
            fixed_shoe_type="trail",
        )
        deal = normalizer.normalize(ghost_record(), context).deal
        assert deal.gender == "womens"
        assert deal.shoe_type == "trail"

    def test_brand_field_used_when_title_has_no_known_brand(self, normalizer, context):
        record = ghost_record(title="Acme Rocket 2 Men's", brand="Acme")
        deal = normalizer.normalize(record, context).deal
        assert deal.brand == "Acme"
        assert deal.model == "Rocket 2"

    def test_unknown_brand_kept_as_unknown(self, normalizer, context):
        deal = normalizer.normalize(ghost_record(title="Mystery Racer 3"), context).deal
        assert deal.brand == "Unknown"
        assert deal.model == "Mystery Racer 3"


# ============================================================================
# TESTS: IDENTITY, IMAGES AND CATEGORY
# ============================================================================

class TestRecordChecks:
    """Tests for the non-price rejection reasons."""

    def test_missing_title(self, normalizer, context):
        result = normalizer.normalize(ghost_record(title="   "), context)
        assert result.reason == RejectionReason.MISSING_IDENTITY

    def test_relative_url_uses_base(self, normalizer, context):
        result = normalizer.normalize(ghost_record(url="/Brooks_Ghost_15/descpage.html"), context)
        assert result.deal.listing_url == "https://www.runningwarehouse.com/Brooks_Ghost_15/descpage.html"

    def test_relative_url_without_base_rejected(self, normalizer):
        context = SourceContext(source_id="feed", store="Feed Store")
        result = normalizer.normalize(ghost_record(url="/Brooks_Ghost_15"), context)
        assert result.reason == RejectionReason.MISSING_IDENTITY

    def test_placeholder_image_rejected(self, normalizer, context):
        result = normalizer.normalize(ghost_record(image="/images/placeholder.png"), context)
        assert result.reason == RejectionReason.MISSING_IMAGE

    def test_missing_image_rejected(self, normalizer, context):
        result = normalizer.normalize(ghost_record(image=None), context)
        assert result.reason == RejectionReason.MISSING_IMAGE

    def test_apparel_excluded(self, normalizer, context):
        result = normalizer.normalize(ghost_record(title="Brooks Run Visible Jacket Men's"), context)
        assert result.reason == RejectionReason.CATEGORY_EXCLUDED

    def test_non_mapping_record(self, normalizer, context):
        result = normalizer.normalize(RawRecord(data=["not", "a", "dict"]), context)
        assert result.reason == RejectionReason.INVALID_RECORD


# ============================================================================
# TESTS: TEXT PRICES AND RANGES
# ============================================================================

class TestTextAndRangePrices:
    """Tests for listing-page price blocks and price ranges."""

    def test_price_html_from_listing_tile(self, normalizer, context):
        record = RawRecord(
            data={"title": "Sale HOKA Women's Clifton 9", "url": "/hoka-clifton-9-womens", "image": "//cdn.example/c9.jpg"},
            price_html='<div class="price"><span>$145.00</span> <span>$99.95</span></div>',
        )
        deal = normalizer.normalize(record, context).deal

        assert deal.listing_name == "HOKA Women's Clifton 9"
        assert (deal.brand, deal.model) == ("HOKA", "Clifton 9")
        assert deal.sale_price == 99.95
        assert deal.original_price == 145.0
        assert deal.discount_percent == 31
        assert deal.gender == "womens"
        assert deal.image_url == "https://cdn.example/c9.jpg"

    def test_ambiguous_price_text(self, normalizer, context):
        record = RawRecord(
            data={"title": "HOKA Clifton 9", "url": "/c9", "image": "/c9.jpg"},
            price_text="$160.00 $140.00 $120.00 $99.00",
        )
        result = normalizer.normalize(record, context)
        assert result.reason == RejectionReason.AMBIGUOUS_PRICE

    def test_range_deal(self, normalizer, context):
        record = RawRecord(
            data={
                "title": "HOKA Clifton 9",
                "salePriceLow": 99.95,
                "salePriceHigh": 119.95,
                "originalPriceHigh": 145,
                "url": "/c9",
                "image": "/c9.jpg",
            }
        )
        deal = normalizer.normalize(record, context).deal

        assert deal.is_range
        assert deal.sale_price is None
        assert deal.discount_percent is None
        assert deal.sale_price_low == 99.95
        assert deal.sale_price_high == 119.95
        assert deal.original_price_low == 145.0
        assert deal.original_price_high == 145.0
        assert deal.discount_percent_up_to == 31
        assert deal.effective_discount == 31
        assert deal.effective_sale_price == 99.95

    def test_collapsed_range_is_discrete(self, normalizer, context):
        record = RawRecord(
            data={
                "title": "HOKA Clifton 9",
                "salePriceLow": 100,
                "salePriceHigh": 100,
                "originalPriceLow": 145,
                "originalPriceHigh": 145,
                "url": "/c9",
                "image": "/c9.jpg",
            }
        )
        deal = normalizer.normalize(record, context).deal
        assert not deal.is_range
        assert deal.sale_price == 100.0
        assert deal.discount_percent == 31

    def test_range_above_original_rejected(self, normalizer, context):
        record = RawRecord(
            data={
                "title": "HOKA Clifton 9",
                "salePriceLow": 150,
                "salePriceHigh": 160,
                "originalPriceHigh": 145,
                "url": "/c9",
                "image": "/c9.jpg",
            }
        )
        result = normalizer.normalize(record, context)
        assert result.reason == RejectionReason.DISCOUNT_OUT_OF_RANGE


# ============================================================================
# TESTS: DISCOUNT WINDOW
# ============================================================================

def structured_record(sale, original):
    return ghost_record(salePrice=sale, originalPrice=original)


def text_record(sale, original):
    return RawRecord(
        data={"title": "Brooks Ghost 15 Men's", "url": GHOST_URL, "image": GHOST_IMAGE},
        price_text=f"${original:.2f} ${sale:.2f}",
    )


class TestDiscountWindow:
    """Structured and text prices share one unrounded discount window."""

    @pytest.mark.parametrize("build", [structured_record, text_record])
    @pytest.mark.parametrize(
        "sale,original,accepted",
        [
            (95.4, 100, False),
            (95, 100, True),
            (20, 200, True),
            (19.2, 200, False),
        ],
    )
    def test_window_edges(self, normalizer, context, build, sale, original, accepted):
        result = normalizer.normalize(build(sale, original), context)

        assert result.accepted is accepted
        if not accepted:
            assert result.reason == RejectionReason.DISCOUNT_OUT_OF_RANGE

    @pytest.mark.parametrize("build", [structured_record, text_record])
    def test_configured_window_applies_to_both_paths(self, context, build):
        strict = DealNormalizer(min_discount=40, max_discount=90, min_price=10, max_price=1000)

        assert strict.normalize(build(70, 100), context).reason == RejectionReason.DISCOUNT_OUT_OF_RANGE
        assert strict.normalize(build(60, 100), context).accepted
