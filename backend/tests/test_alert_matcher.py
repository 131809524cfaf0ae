"""Tests for alert matching against the catalog."""

from datetime import timedelta

import pytest

from solewatch.schemas.alert import Alert
from solewatch.services.alert_matcher import AlertMatcher, squash, tokenize, tokens_match


@pytest.fixture
def matcher():
    return AlertMatcher(ttl_days=30, cooldown_hours=24, top_n=12)


def make_alert(now, **overrides):
    fields = dict(
        id="alert_1",
        email="runner@example.com",
        brand="asics",
        model="gt2000",
        target_price=100,
        set_at=now - timedelta(days=1),
    )
    fields.update(overrides)
    return Alert(**fields)


# ============================================================================
# TESTS: TEXT HELPERS
# ============================================================================

class TestTextHelpers:

    def test_tokenize(self):
        assert tokenize("GT-2000 12") == ["gt", "2000", "12"]
        assert tokenize(None) == []

    def test_squash(self):
        assert squash("Gel-Kayano 30") == "gelkayano30"

    def test_tokens_match_prefix_either_way(self):
        assert tokens_match(["kay"], ["gel", "kayano", "30"])
        assert tokens_match(["kayano30"], ["kayano"])
        assert not tokens_match(["nimbus"], ["gel", "kayano"])
        assert tokens_match([], ["anything"])


# ============================================================================
# TESTS: MATCHING
# ============================================================================

class TestAlertMatcher:
    """Tests for AlertMatcher.match."""

    def test_fuzzy_brand_and_model_match(self, matcher, deal_factory, now):
        deal = deal_factory(brand="ASICS", model="GT-2000 12", sale_price=95.0)

        result = matcher.match([deal], [make_alert(now)], now)

        assert len(result.events) == 1
        event = result.events[0]
        assert event.matching_deals == [deal]
        assert event.total_matches == 1
        assert event.days_remaining == 29

    def test_compound_model_word_matches(self, matcher, deal_factory, now):
        deal = deal_factory(brand="Brooks", model="Ghost Max 2", sale_price=90.0)
        alert = make_alert(now, brand="Brooks", model="ghostmax")
        assert matcher.match([deal], [alert], now).events

    def test_squashed_brand_and_model_match(self, matcher, deal_factory, now):
        deal = deal_factory(brand="New Balance", model="1080 v13", sale_price=90.0)
        alert = make_alert(now, brand="", model="newbalance1080")

        assert not tokens_match(tokenize(alert.model), tokenize(deal.model))
        assert matcher.match([deal], [alert], now).events

    def test_short_squashed_key_does_not_match(self, matcher, deal_factory, now):
        deal = deal_factory(brand="Saucony", model="Endorphin Pro 4", sale_price=90.0)
        alert = make_alert(now, brand="", model="o4")

        assert squash(alert.model) in squash(deal.brand + deal.model)
        assert matcher.match([deal], [alert], now).events == []

    def test_price_above_target_does_not_match(self, matcher, deal_factory, now):
        deal = deal_factory(sale_price=100.01)
        assert not matcher.match([deal], [make_alert(now)], now).events

    def test_price_equal_to_target_matches(self, matcher, deal_factory, now):
        deal = deal_factory(sale_price=100.0)
        assert matcher.match([deal], [make_alert(now)], now).events

    def test_string_target_price(self, matcher, deal_factory, now):
        deal = deal_factory(sale_price=95.0)
        assert matcher.match([deal], [make_alert(now, target_price="$100")], now).events

    def test_range_deal_matches_on_low_price(self, matcher, deal_factory, now):
        deal = deal_factory(
            sale_price=None,
            original_price=None,
            discount_percent=None,
            sale_price_low=89.95,
            sale_price_high=119.95,
            original_price_low=140.0,
            original_price_high=140.0,
            discount_percent_up_to=36,
        )
        assert matcher.match([deal], [make_alert(now)], now).events

    def test_brand_mismatch(self, matcher, deal_factory, now):
        deal = deal_factory(brand="Brooks", model="GT 2000")
        assert not matcher.match([deal], [make_alert(now)], now).events

    def test_gender_filter_excludes_opposite_only(self, matcher, deal_factory, now):
        alert = make_alert(now, gender="mens")
        womens = deal_factory(gender="womens", listing_url="https://x.example/w")
        unisex = deal_factory(gender="unisex", listing_url="https://x.example/u")
        unknown = deal_factory(gender="unknown", listing_url="https://x.example/n")

        event = matcher.match([womens, unisex, unknown], [alert], now).events[0]

        assert event.matching_deals == [unisex, unknown]

    def test_both_gender_matches_everything(self, matcher, deal_factory, now):
        alert = make_alert(now, gender="both")
        deals = [deal_factory(gender="womens"), deal_factory(gender="mens")]
        assert matcher.match(deals, [alert], now).events[0].total_matches == 2

    def test_matches_sorted_and_capped(self, matcher, deal_factory, now):
        deals = [
            deal_factory(sale_price=float(99 - i), listing_url=f"https://x.example/{i}")
            for i in range(15)
        ]

        event = matcher.match(deals, [make_alert(now)], now).events[0]

        assert event.total_matches == 15
        assert len(event.matching_deals) == 12
        prices = [d.sale_price for d in event.matching_deals]
        assert prices == sorted(prices)
        assert prices[0] == 85.0


# ============================================================================
# TESTS: ALERT STATE
# ============================================================================

class TestAlertState:
    """Tests for expiration, cancellation and cooldown."""

    def test_expired_alert_skipped(self, matcher, deal_factory, now):
        alert = make_alert(now, set_at=now - timedelta(days=31))

        result = matcher.match([deal_factory()], [alert], now)

        assert not result.events
        assert result.skipped_inactive == 1
        assert result.checked == 0

    def test_alert_on_last_day_still_active(self, matcher, deal_factory, now):
        alert = make_alert(now, set_at=now - timedelta(days=29, hours=23))
        event = matcher.match([deal_factory()], [alert], now).events[0]
        assert event.days_remaining == 1

    def test_cancelled_alert_skipped(self, matcher, deal_factory, now):
        alert = make_alert(now, cancelled_at=now - timedelta(hours=1))
        assert matcher.match([deal_factory()], [alert], now).skipped_inactive == 1

    def test_cooldown(self, matcher, deal_factory, now):
        recent = make_alert(now, id="recent", last_notified_at=now - timedelta(hours=23))
        stale = make_alert(now, id="stale", last_notified_at=now - timedelta(hours=25))

        result = matcher.match([deal_factory()], [recent, stale], now)

        assert [e.alert.id for e in result.events] == ["stale"]
        assert result.skipped_cooldown == 1
        assert result.checked == 2

    def test_epoch_millis_timestamps(self, matcher, deal_factory, now):
        alert = Alert.model_validate(
            {
                "id": "alert_legacy",
                "email": "Runner@Example.com ",
                "brand": "asics",
                "model": "gt2000",
                "targetPrice": "100",
                "setAt": int((now - timedelta(days=2)).timestamp() * 1000),
            }
        )
        assert alert.email == "runner@example.com"
        assert matcher.match([deal_factory()], [alert], now).events

    def test_alert_without_set_at_is_expired(self, matcher, deal_factory, now):
        alert = make_alert(now, set_at=None)
        assert matcher.match([deal_factory()], [alert], now).skipped_inactive == 1
