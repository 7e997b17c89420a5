# domains/tracking/carriers/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Optional

from ..canonical import TrackingResponse


@dataclass
class TrackingRequest:
    """캐리어 무관 조회 요청. 어댑터가 각 API 형식으로 바꾼다."""

    tracking_ids: List[str] = field(default_factory=list)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    proof_of_delivery: Optional[bool] = None
    include_detailed_view: Optional[bool] = None
    # 일부 캐리어만 쓰는 선택 조건
    account: Optional[str] = None
    destination_postal_code: Optional[str] = None
    event_sort_order: Optional[str] = None

    @property
    def first_id(self) -> str:
        return self.tracking_ids[0] if self.tracking_ids else ""


class CarrierAdapter:
    """
    각 택배사 어댑터의 최소 공통 인터페이스
      - fetch_raw: 외부 API 호출 → 캐리어 원본 payload (전송 실패는 CarrierTransportError)
      - normalize: 원본 payload → TrackingResponse (절대 raise 하지 않음)
    """

    code: str = ""

    def fetch_raw(self, request: TrackingRequest) -> Any:
        raise NotImplementedError

    def normalize(self, raw: Any) -> TrackingResponse:
        raise NotImplementedError

    def track(self, request: TrackingRequest) -> TrackingResponse:
        """fetch_raw → normalize"""
        return self.normalize(self.fetch_raw(request))
