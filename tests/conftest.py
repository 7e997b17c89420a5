# tests/conftest.py
from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from domains.tracking.canonical import (
    Address,
    Event,
    Location,
    Package,
    ResponseStatus,
    Shipment,
    TrackingResponse,
)
from domains.tracking.carriers import CarrierAdapter, CarrierRegistry
from domains.tracking.models import TrackedShipment
from domains.tracking.store import TrackingStore


# ─────────────────────────────────────────────────────────────
# 전역 테스트 설정: 재조회 간 대기 제거
# ─────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _fast_tracking(settings):
    settings.TRACKING = {
        **settings.TRACKING,
        "INTER_CALL_DELAY_SECONDS": 0,
        "SCHEDULER_AUTOSTART": False,
    }


@pytest.fixture(autouse=True)
def _clear_cache():
    # 재조회 패스 락이 테스트 사이에 남지 않게
    cache.clear()
    yield
    cache.clear()


# ─────────────────────────────────────────────────────────────
# 클라이언트
# ─────────────────────────────────────────────────────────────
@pytest.fixture
def api_client():
    return APIClient()


# ─────────────────────────────────────────────────────────────
# 정규화 결과 팩토리
# ─────────────────────────────────────────────────────────────
def _make_response(
    status=ResponseStatus.SUCCESS,
    delivered=False,
    packages=None,
    errors=None,
    description=None,
):
    if packages is None:
        packages = [
            Package(
                id="PKG-1",
                status_code="DEL" if delivered else "ITR",
                status_description="Delivered" if delivered else "In transit",
                most_recent_event=Event(
                    timestamp=datetime(2022, 11, 17, 10, 48, 28, tzinfo=dt_timezone.utc),
                    code="2300",
                    description="Arrived at facility",
                    location=Location(city="Toronto", region="ON", country_code="CA"),
                ),
            )
        ]
    return TrackingResponse(
        status=status,
        description=description or f"{status} description",
        errors=list(errors or []),
        shipment=Shipment(
            status_code="DEL" if delivered else "ITR",
            status_description="Delivered" if delivered else "In transit",
            is_delivered=delivered,
            shipper=Address(city="Montreal", region="QC", country_code="CA"),
            receiver=Address(city="Toronto", region="ON", country_code="CA"),
            packages=packages,
        ),
    )


@pytest.fixture
def make_response():
    """사용법: make_response(status="error", errors=["X: y"]) / make_response(delivered=True)"""
    return _make_response


# ─────────────────────────────────────────────────────────────
# 가짜 어댑터 / 레지스트리
# ─────────────────────────────────────────────────────────────
class FakeAdapter(CarrierAdapter):
    """
    outcomes: tracking_number → TrackingResponse 또는 Exception
    정규화는 그대로 통과 (raw 가 이미 TrackingResponse)
    """

    def __init__(self, code="fake", outcomes=None, default=None):
        self.code = code
        self.outcomes = dict(outcomes or {})
        self.default = default
        self.calls = []

    def fetch_raw(self, request):
        self.calls.append(request)
        outcome = self.outcomes.get(request.first_id, self.default)
        if outcome is None:
            outcome = _make_response()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def normalize(self, raw):
        return raw


@pytest.fixture
def fake_adapter_factory():
    return FakeAdapter


@pytest.fixture
def fake_registry():
    """ups / purolator 둘 다 가짜 어댑터로 등록된 레지스트리"""
    registry = CarrierRegistry()
    registry.register("ups", FakeAdapter("ups"))
    registry.register("purolator", FakeAdapter("purolator"))
    return registry


@pytest.fixture
def use_registry(monkeypatch):
    """services/scheduler 가 보는 기본 레지스트리 교체"""

    def _use(registry):
        import domains.tracking.carriers.registry as registry_module

        monkeypatch.setattr(registry_module, "_default", registry)
        return registry

    return _use


@pytest.fixture
def tracking_store(db):
    return TrackingStore(max_error_count=10)


@pytest.fixture
def age(db):
    """age("A", 60, carrier="ups") → last_updated 를 60분 전으로"""

    def _age(tracking_number, minutes, carrier="purolator"):
        TrackedShipment.objects.filter(tracking_number=tracking_number, carrier=carrier).update(
            last_updated=timezone.now() - timedelta(minutes=minutes)
        )

    return _age
