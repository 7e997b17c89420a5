# tests/test_tracking_store.py
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from domains.tracking.exceptions import PersistenceError
from domains.tracking.models import DeactivationReason, TrackedShipment
from domains.tracking.store import TrackingStore

pytestmark = pytest.mark.django_db

TN = "520127751300"


class TestUpsert:
    def test_creates_active_record(self, tracking_store, make_response):
        obj = tracking_store.upsert(TN, "purolator", make_response())

        assert obj.is_active is True
        assert obj.error_count == 0
        assert obj.last_error is None
        assert obj.deactivated_reason == DeactivationReason.NONE
        assert obj.last_response["status"] == "success"
        assert obj.last_response["shipment"]["packages"][0]["id"] == "PKG-1"

    def test_is_idempotent(self, tracking_store, make_response):
        response = make_response()
        first = tracking_store.upsert(TN, "purolator", response)
        second = tracking_store.upsert(TN, "purolator", response)

        assert TrackedShipment.objects.count() == 1
        assert first.pk == second.pk
        assert second.last_response == first.last_response
        assert (second.is_active, second.error_count, second.last_error) == (True, 0, None)

    def test_same_number_different_carrier_is_separate(self, tracking_store, make_response):
        tracking_store.upsert(TN, "purolator", make_response())
        tracking_store.upsert(TN, "ups", make_response())

        assert TrackedShipment.objects.filter(tracking_number=TN).count() == 2

    def test_success_resets_error_counters(self, tracking_store, make_response):
        tracking_store.upsert(TN, "purolator", make_response())
        for _ in range(3):
            tracking_store.record_error(TN, "purolator", "timeout")

        obj = tracking_store.upsert(TN, "purolator", make_response(delivered=True))

        assert obj.error_count == 0
        assert obj.last_error is None
        assert obj.is_delivered is True


class TestRecordError:
    def test_unknown_key_is_noop(self, tracking_store):
        assert tracking_store.record_error("nope", "ups", "boom") is None
        assert TrackedShipment.objects.count() == 0

    def test_deactivates_exactly_at_threshold(self, tracking_store, make_response):
        tracking_store.upsert(TN, "purolator", make_response())

        for i in range(1, 10):
            obj = tracking_store.record_error(TN, "purolator", f"error {i}")
            assert obj.is_active is True, i
            assert obj.error_count == i

        obj = tracking_store.record_error(TN, "purolator", "error 10")

        assert obj.error_count == 10
        assert obj.is_active is False
        assert obj.deactivated_reason == DeactivationReason.ERRORS
        assert obj.last_error == "error 10"

    def test_custom_threshold(self, db, make_response):
        st = TrackingStore(max_error_count=2)
        st.upsert(TN, "purolator", make_response())

        assert st.record_error(TN, "purolator", "a").is_active is True
        assert st.record_error(TN, "purolator", "b").is_active is False

    def test_success_after_error_deactivation_reactivates(self, tracking_store, make_response):
        tracking_store.upsert(TN, "purolator", make_response())
        for _ in range(10):
            tracking_store.record_error(TN, "purolator", "boom")

        obj = tracking_store.upsert(TN, "purolator", make_response())

        assert obj.is_active is True
        assert obj.deactivated_reason == DeactivationReason.NONE
        assert obj.error_count == 0

    def test_errors_do_not_overwrite_user_deactivation_reason(self, tracking_store, make_response):
        tracking_store.upsert(TN, "purolator", make_response())
        tracking_store.deactivate(TN, "purolator")
        for _ in range(12):
            obj = tracking_store.record_error(TN, "purolator", "boom")

        assert obj.error_count == 12
        assert obj.deactivated_reason == DeactivationReason.USER


class TestUserLifecycle:
    def test_user_deactivation_survives_upsert(self, tracking_store, make_response):
        tracking_store.upsert(TN, "purolator", make_response())
        tracking_store.deactivate(TN, "purolator")

        obj = tracking_store.upsert(TN, "purolator", make_response())

        # 응답/카운터는 갱신되지만 활성화는 사용자만
        assert obj.is_active is False
        assert obj.deactivated_reason == DeactivationReason.USER
        assert obj.error_count == 0

    def test_reactivate_clears_counters(self, tracking_store, make_response):
        tracking_store.upsert(TN, "purolator", make_response())
        for _ in range(10):
            tracking_store.record_error(TN, "purolator", "boom")

        obj = tracking_store.reactivate(TN, "purolator")

        assert (obj.is_active, obj.error_count, obj.last_error) == (True, 0, None)

    def test_lifecycle_on_missing_record_returns_none(self, tracking_store):
        assert tracking_store.deactivate("nope", "ups") is None
        assert tracking_store.reactivate("nope", "ups") is None

    def test_delete(self, tracking_store, make_response):
        tracking_store.upsert(TN, "purolator", make_response())

        assert tracking_store.delete(TN, "purolator") is True
        assert tracking_store.delete(TN, "purolator") is False
        assert tracking_store.get(TN, "purolator") is None


class TestReads:
    def test_read_only_get_cannot_be_mutated(self, tracking_store, make_response):
        tracking_store.upsert(TN, "purolator", make_response())

        row = tracking_store.get(TN, "purolator", fields=("last_response", "error_count"), read_only=True)

        assert set(row.keys()) == {"last_response", "error_count"}
        with pytest.raises(TypeError):
            row["error_count"] = 99
        assert TrackedShipment.objects.get(tracking_number=TN).error_count == 0

    def test_get_returns_model_by_default(self, tracking_store, make_response):
        tracking_store.upsert(TN, "purolator", make_response())

        obj = tracking_store.get(TN, "purolator")

        assert isinstance(obj, TrackedShipment)
        assert tracking_store.get(TN, "purolator", read_only=True)["tracking_number"] == TN

    def test_list_stale_filters_and_orders(self, tracking_store, make_response, age):
        tracking_store.upsert("old", "purolator", make_response())
        tracking_store.upsert("older", "purolator", make_response())
        tracking_store.upsert("fresh", "purolator", make_response())
        tracking_store.upsert("delivered", "purolator", make_response(delivered=True))
        tracking_store.upsert("inactive", "purolator", make_response())
        tracking_store.deactivate("inactive", "purolator")

        age("old", 20)
        age("older", 60)
        age("delivered", 60)
        age("inactive", 60)

        stale = tracking_store.list_stale(15)

        assert stale == [
            {"tracking_number": "older", "carrier": "purolator"},
            {"tracking_number": "old", "carrier": "purolator"},
        ]

    def test_list_stale_uses_refresh_interval_by_default(self, tracking_store, make_response, age, settings):
        settings.TRACKING = {**settings.TRACKING, "REFRESH_INTERVAL_MINUTES": 30}
        tracking_store.upsert("a", "ups", make_response())
        tracking_store.upsert("b", "ups", make_response())
        age("a", 20, carrier="ups")
        age("b", 40, carrier="ups")

        assert [r["tracking_number"] for r in tracking_store.list_stale()] == ["b"]

    def test_statistics(self, tracking_store, make_response):
        tracking_store.upsert("1", "ups", make_response())
        tracking_store.upsert("2", "ups", make_response())
        tracking_store.upsert("3", "purolator", make_response())
        tracking_store.deactivate("2", "ups")

        assert tracking_store.statistics() == {
            "total": 3,
            "active": 2,
            "inactive": 1,
            "by_carrier": {"ups": 2, "purolator": 1},
        }


def test_database_errors_become_persistence_errors(tracking_store):
    with patch.object(TrackedShipment.objects, "filter", side_effect=DatabaseError("db down")):
        with pytest.raises(PersistenceError) as exc:
            tracking_store.delete(TN, "ups")

    assert "db down" in str(exc.value)
