# domains/tracking/exceptions.py
from __future__ import annotations

from typing import Iterable, List, Optional


class TrackingError(Exception):
    """tracking 도메인 예외 베이스"""


class TrackingValidationError(TrackingError):
    """잘못된 요청 형태. 호출자에게 바로 돌려주고 재시도하지 않는다."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [message])


class CarrierNotSupported(TrackingValidationError):
    def __init__(self, carrier: str, supported: Iterable[str]):
        self.carrier = carrier
        self.supported = sorted(supported)
        message = (
            f'Carrier "{carrier}" is not supported. '
            f"Supported carriers: {', '.join(self.supported)}"
        )
        super().__init__(message)


class CarrierTransportError(TrackingError):
    """네트워크/인증/HTTP 실패. 레코드에 기록되고 다음 패스에서 재시도."""

    def __init__(self, carrier: str, message: str):
        self.carrier = carrier
        super().__init__(f"{carrier}: {message}")


class CarrierConfigurationError(CarrierTransportError):
    """자격증명 누락 등 어댑터 설정 오류"""


class PersistenceError(TrackingError):
    """저장소 접근 실패. 현재 작업만 실패시키고 스케줄러 루프는 유지."""


class TrackingFailed(TrackingError):
    """track-and-store 중 캐리어가 status=error 로 응답한 경우"""

    def __init__(self, response):
        self.response = response
        super().__init__(response.description)
