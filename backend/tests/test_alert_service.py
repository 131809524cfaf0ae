"""Tests for the alert lifecycle service and its storage."""

import json
from datetime import timedelta

import pytest

from solewatch.core.exceptions import (
    AlertLimitExceededError,
    AlertNotFoundError,
    AlertValidationError,
    InvalidAlertStateError,
)
from solewatch.services.alert_service import (
    generate_alert_id,
    parse_target_price,
    sanitize_input,
)
from solewatch.storage.blob_store import LocalBlobStore

EMAIL = "runner@example.com"


async def create(service, now, **overrides):
    fields = dict(email=EMAIL, brand="ASICS", model="GT-2000", target_price="100", now=now)
    fields.update(overrides)
    return (await service.create_alert(**fields)).alert


# ============================================================================
# TESTS: INPUT HELPERS
# ============================================================================

class TestInputHelpers:

    def test_sanitize_input(self):
        assert sanitize_input("  <b>Nike</b> ") == "bNike/b"
        assert sanitize_input("<script>alert('x')</script>") == "alert(x)/"
        assert len(sanitize_input("x" * 500)) == 100
        assert sanitize_input(None) == ""

    @pytest.mark.parametrize(
        "value, expected",
        [("120", 120), (" 99 dollars", 99), (120.7, 120), ("abc", None), (None, None), (True, None)],
    )
    def test_parse_target_price(self, value, expected):
        assert parse_target_price(value) == expected

    def test_generate_alert_id(self):
        alert_id = generate_alert_id(1700000000000)
        prefix, ms, suffix = alert_id.split("_")
        assert prefix == "alert"
        assert ms == "1700000000000"
        assert len(suffix) == 9


# ============================================================================
# TESTS: CREATE
# ============================================================================

class TestCreateAlert:
    """Tests for AlertService.create_alert."""

    async def test_create_persists_alert(self, alert_service, alert_repository, blob_store, now):
        created = await alert_service.create_alert(
            email=" Runner@Example.com ",
            brand="ASICS",
            model="GT-2000",
            target_price="100",
            now=now,
        )

        alert = created.alert
        assert alert.email == EMAIL
        assert alert.target_price == 100
        assert alert.gender == "both"
        assert alert.set_at == now
        assert alert.cancelled_at is None
        assert alert.id.startswith("alert_")
        assert [a.id for a in created.user_alerts] == [alert.id]

        document = json.loads(await blob_store.read("alerts.json"))
        assert document["alerts"][0]["id"] == alert.id
        assert document["alerts"][0]["targetPrice"] == 100
        assert "lastUpdated" in document
        assert [a.id for a in await alert_repository.load()] == [alert.id]

    async def test_create_keeps_gender(self, alert_service, now):
        alert = await create(alert_service, now, gender="womens")
        assert alert.gender == "womens"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"email": "not-an-email"},
            {"email": ""},
            {"brand": ""},
            {"model": "   "},
            {"target_price": "free"},
            {"target_price": 0},
        ],
    )
    async def test_create_validation(self, alert_service, now, overrides):
        with pytest.raises(AlertValidationError):
            await create(alert_service, now, **overrides)

    async def test_markup_only_brand_rejected(self, alert_service, now):
        with pytest.raises(AlertValidationError):
            await create(alert_service, now, brand="<>")

    async def test_active_alert_limit(self, alert_service, now):
        for i in range(7):
            await create(alert_service, now, model=f"GT-{2000 + i}")

        with pytest.raises(AlertLimitExceededError) as exc_info:
            await create(alert_service, now, model="GT-3000")

        assert exc_info.value.current == 7
        assert exc_info.value.limit == 7
        assert len(await alert_service.list_alerts(EMAIL)) == 7

    async def test_limit_ignores_inactive_and_other_emails(self, alert_service, now):
        old = now - timedelta(days=40)
        for i in range(7):
            await create(alert_service, old, model=f"Old {i}")
        for i in range(7):
            await create(alert_service, now, email="other@example.com", model=f"Other {i}")

        alert = await create(alert_service, now)
        assert alert.email == EMAIL


# ============================================================================
# TESTS: MANAGE
# ============================================================================

class TestManageAlerts:
    """Tests for list, cancel, update and remove."""

    async def test_list_newest_first(self, alert_service, now):
        first = await create(alert_service, now - timedelta(days=2), model="Older")
        second = await create(alert_service, now, model="Newer")
        await create(alert_service, now, email="other@example.com")

        alerts = await alert_service.list_alerts("RUNNER@example.com")

        assert [a.id for a in alerts] == [second.id, first.id]

    async def test_cancel_twice(self, alert_service, now):
        alert = await create(alert_service, now)

        cancelled = await alert_service.cancel_alert(EMAIL, alert.id, now=now)
        assert cancelled.cancelled_at == now

        with pytest.raises(InvalidAlertStateError):
            await alert_service.cancel_alert(EMAIL, alert.id, now=now)

    async def test_cancel_other_users_alert(self, alert_service, now):
        alert = await create(alert_service, now)
        with pytest.raises(AlertNotFoundError):
            await alert_service.cancel_alert("intruder@example.com", alert.id)

    async def test_update_resets_window(self, alert_service, now):
        alert = await create(alert_service, now - timedelta(days=20))
        await alert_service.record_notifications([alert.id], now - timedelta(days=1))

        updated = await alert_service.update_target_price(EMAIL, alert.id, "85", now=now)

        assert updated.target_price == 85
        assert updated.set_at == now
        assert updated.last_notified_at is None
        stored = (await alert_service.list_alerts(EMAIL))[0]
        assert stored.target_price == 85
        assert stored.set_at == now

    async def test_update_expired_or_cancelled(self, alert_service, now):
        expired = await create(alert_service, now - timedelta(days=31), model="Expired")
        cancelled = await create(alert_service, now, model="Cancelled")
        await alert_service.cancel_alert(EMAIL, cancelled.id, now=now)

        with pytest.raises(InvalidAlertStateError):
            await alert_service.update_target_price(EMAIL, expired.id, 80, now=now)
        with pytest.raises(InvalidAlertStateError):
            await alert_service.update_target_price(EMAIL, cancelled.id, 80, now=now)

    async def test_update_invalid_price(self, alert_service, now):
        alert = await create(alert_service, now)
        with pytest.raises(AlertValidationError):
            await alert_service.update_target_price(EMAIL, alert.id, "", now=now)

    async def test_remove_only_inactive(self, alert_service, now):
        alert = await create(alert_service, now)

        with pytest.raises(InvalidAlertStateError):
            await alert_service.remove_alert(EMAIL, alert.id, now=now)

        await alert_service.cancel_alert(EMAIL, alert.id, now=now)
        await alert_service.remove_alert(EMAIL, alert.id, now=now)
        assert await alert_service.list_alerts(EMAIL) == []

    async def test_failed_mutation_is_not_saved(self, alert_service, now):
        alert = await create(alert_service, now)
        with pytest.raises(InvalidAlertStateError):
            await alert_service.remove_alert(EMAIL, alert.id, now=now)
        assert len(await alert_service.list_alerts(EMAIL)) == 1

    async def test_record_notifications(self, alert_service, now):
        first = await create(alert_service, now, model="One")
        second = await create(alert_service, now, model="Two")

        updated = await alert_service.record_notifications([first.id, "missing"], now)

        assert updated == 1
        by_id = {a.id: a for a in await alert_service.list_alerts(EMAIL)}
        assert by_id[first.id].last_notified_at == now
        assert by_id[second.id].last_notified_at is None
        assert await alert_service.record_notifications([], now) == 0

    async def test_record_notifications_skips_rearmed_alert(self, alert_service, now):
        alert = await create(alert_service, now - timedelta(days=2))
        snapshot = await alert_service.repository.load()
        await alert_service.update_target_price(EMAIL, alert.id, 80, now=now)

        updated = await alert_service.record_notifications([alert.id], now, snapshot=snapshot)

        assert updated == 0
        assert (await alert_service.list_alerts(EMAIL))[0].last_notified_at is None


# ============================================================================
# TESTS: STORAGE
# ============================================================================

class TestAlertStorage:
    """Tests for the alerts document in the blob store."""

    async def test_missing_document_is_empty(self, alert_repository):
        assert await alert_repository.load() == []

    async def test_malformed_document_is_empty(self, alert_repository, blob_store):
        await blob_store.put("alerts.json", "{not json")
        assert await alert_repository.load() == []

    async def test_invalid_entries_skipped(self, alert_repository, blob_store):
        await blob_store.put(
            "alerts.json",
            json.dumps({"alerts": [{"email": "no-id@example.com"}, {"id": "a1", "email": "x@example.com"}]}),
        )
        assert [a.id for a in await alert_repository.load()] == ["a1"]

    async def test_unknown_fields_preserved(self, alert_repository, blob_store):
        await blob_store.put(
            "alerts.json",
            json.dumps({"alerts": [{"id": "a1", "email": "x@example.com", "source": "homepage"}]}),
        )
        async with alert_repository.transaction():
            pass

        document = json.loads(await blob_store.read("alerts.json"))
        assert document["alerts"][0]["source"] == "homepage"

    async def test_blob_key_cannot_escape_root(self, blob_store):
        with pytest.raises(ValueError):
            await blob_store.read("../outside.json")

    async def test_blob_store_put_get_list(self, tmp_path):
        store = LocalBlobStore(str(tmp_path / "blobs"), public_base_url="https://blob.example/")

        url = await store.put("scrapers/brooks.json", "[]")
        await store.put("deals.json", "{}")

        assert url == "https://blob.example/scrapers/brooks.json"
        assert await store.get("scrapers/brooks.json") == url
        assert await store.get("missing.json") is None
        assert await store.read("missing.json") is None
        refs = await store.list("scrapers/")
        assert [r.key for r in refs] == ["scrapers/brooks.json"]
        assert refs[0].size == 2
