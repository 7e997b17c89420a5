# domains/tracking/canonical.py
"""
캐리어 공통(canonical) 배송 스키마.

모든 정규화기(normalizer)는 이 dataclass 들로만 결과를 돌려준다.
- 위치/주소 필드는 항상 문자열 (모르면 "")
- 응답의 shipment 는 에러일 때도 빈 값으로 채워진 구조 (None 금지)
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from django.utils import timezone


class ResponseStatus:
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ERROR = "error"

    ALL = (SUCCESS, NOT_FOUND, ERROR)


@dataclass
class Location:
    street1: str = ""
    street2: str = ""
    city: str = ""
    region: str = ""
    country_code: str = ""
    postal_code: str = ""


@dataclass
class Address:
    city: str = ""
    region: str = ""
    country_code: str = ""
    postal_code: str = ""


@dataclass
class Event:
    timestamp: datetime = field(default_factory=timezone.now)
    code: str = ""
    description: str = ""
    location: Location = field(default_factory=Location)


@dataclass
class Package:
    id: Optional[str] = None
    status_code: str = ""
    status_description: str = ""
    most_recent_event: Event = field(default_factory=Event)


@dataclass
class Shipment:
    status_code: str = ""
    status_description: str = ""
    is_delivered: bool = False
    created_date: datetime = field(default_factory=timezone.now)
    shipper: Address = field(default_factory=Address)
    receiver: Address = field(default_factory=Address)
    packages: List[Package] = field(default_factory=list)


@dataclass
class TrackingResponse:
    status: str
    description: str
    errors: List[str] = field(default_factory=list)
    shipment: Shipment = field(default_factory=Shipment)

    @classmethod
    def error(cls, description: str, errors: Optional[List[str]] = None) -> "TrackingResponse":
        """빈 shipment 를 가진 에러 응답."""
        return cls(status=ResponseStatus.ERROR, description=description, errors=list(errors or []))

    @property
    def is_error(self) -> bool:
        return self.status == ResponseStatus.ERROR

    def to_dict(self) -> Dict[str, Any]:
        """JSON 저장/응답용 dict. datetime 은 ISO8601 문자열."""
        return _jsonable(asdict(self))


def _jsonable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value
