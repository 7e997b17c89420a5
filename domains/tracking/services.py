# domains/tracking/services.py
"""
외부 요청용 진입점 (뷰/어드민이 호출)

    query    : 실시간 조회만, 저장 안 함
    track    : 실시간 조회 후 저장 (findOrCreate)
    status   : 저장된 레코드 조회
    untrack  : 추적 중단 (삭제)
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .canonical import TrackingResponse
from .carriers import TrackingRequest, get_registry
from .exceptions import TrackingFailed, TrackingValidationError
from .models import TrackedShipment
from .store import store

logger = logging.getLogger(__name__)


def _resolve(carrier: str, tracking_number: str):
    tracking_number = (tracking_number or "").strip()
    if not tracking_number:
        raise TrackingValidationError("Tracking number is required")
    registry = get_registry()
    adapter = registry.resolve(carrier)  # 미지원이면 CarrierNotSupported
    return registry.key_for(carrier), tracking_number, adapter


def _request(tracking_number: str, options: Optional[Dict[str, Any]]) -> TrackingRequest:
    options = options or {}
    return TrackingRequest(
        tracking_ids=[tracking_number],
        date_from=options.get("date_from"),
        date_to=options.get("date_to"),
        proof_of_delivery=options.get("proof_of_delivery"),
        include_detailed_view=options.get("include_detailed_view"),
    )


def query(carrier: str, tracking_number: str, options: Optional[Dict[str, Any]] = None) -> TrackingResponse:
    _, tracking_number, adapter = _resolve(carrier, tracking_number)
    return adapter.track(_request(tracking_number, options))


def track(carrier: str, tracking_number: str, options: Optional[Dict[str, Any]] = None) -> TrackedShipment:
    """
    조회 + 저장. 캐리어가 error 로 응답하면 저장하지 않고 TrackingFailed.
    not_found 는 정상 결과로 저장되어 이후 재조회 대상이 된다.
    """
    key, tracking_number, adapter = _resolve(carrier, tracking_number)
    response = adapter.track(_request(tracking_number, options))
    if response.is_error:
        logger.info("Track-and-store rejected for %s:%s: %s", key, tracking_number, response.errors)
        raise TrackingFailed(response)
    return store.upsert(tracking_number, key, response)


def status(carrier: str, tracking_number: str) -> Optional[TrackedShipment]:
    return store.get(tracking_number.strip(), get_registry().key_for(carrier))


def untrack(carrier: str, tracking_number: str) -> bool:
    return store.delete(tracking_number.strip(), get_registry().key_for(carrier))


def deactivate(carrier: str, tracking_number: str) -> Optional[TrackedShipment]:
    return store.deactivate(tracking_number.strip(), get_registry().key_for(carrier))


def reactivate(carrier: str, tracking_number: str) -> Optional[TrackedShipment]:
    return store.reactivate(tracking_number.strip(), get_registry().key_for(carrier))


def stats() -> Dict[str, Any]:
    return store.statistics()


def carriers() -> List[str]:
    return sorted(get_registry().list_supported())
