# domains/tracking/normalizers/common.py
"""
캐리어 payload 를 다룰 때 쓰는 방어적 헬퍼 모음.

캐리어는 같은 필드를 어떤 때는 단일 객체, 어떤 때는 리스트로,
또 어떤 때는 {"Item": [...]} 래퍼로 준다. 이 모듈 밖으로는
그런 모양 차이가 새어 나가지 않게 한다.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time
from datetime import timezone as dt_timezone
from typing import Any, Dict, Iterable, List, Optional

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

logger = logging.getLogger(__name__)


def as_dict(value: Any) -> Dict[str, Any]:
    """dict 가 아니면 빈 dict (zeep 결과는 serialize 후 dict 로 들어온다)."""
    return value if isinstance(value, dict) else {}


def one_or_many(value: Any, *wrapper_keys: str) -> List[Dict[str, Any]]:
    """
    None / 단일 객체 / 리스트 / {"wrapper": 단일|리스트} → 항상 dict 리스트.
    wrapper_keys 는 리스트를 감싸는 키 후보 (예: "SearchResult", "package").
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [v for v in value if isinstance(v, dict)]
    if isinstance(value, dict):
        for key in wrapper_keys:
            if key in value:
                return one_or_many(value.get(key))
        return [value]
    return []


def text(value: Any) -> str:
    """None → "", 나머지는 strip 한 문자열"""
    if value is None:
        return ""
    return str(value).strip()


def first_text(*values: Any) -> str:
    for v in values:
        s = text(v)
        if s:
            return s
    return ""


def format_error(code: Any, description: Any, additional: Any = None) -> str:
    out = f"{text(code)}: {text(description)}"
    extra = text(additional)
    if extra:
        out = f"{out} - {extra}"
    return out


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    파싱 실패 시 None. 지원 형태:
      - datetime / date 객체 (SOAP 클라이언트가 이미 변환한 값)
      - ISO8601, "YYYY-MM-DD HH:MM:SS", "YYYY-MM-DD"
    naive 값은 UTC 로 간주한다.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    else:
        s = str(value).strip()
        try:
            dt = parse_datetime(s)
            if dt is None:
                d = parse_date(s)
                dt = datetime.combine(d, time.min) if d else None
        except ValueError:
            # 형식은 맞지만 값이 범위를 벗어난 경우 (예: 2022-13-45)
            dt = None
    if dt is None:
        return None
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt, timezone=dt_timezone.utc)
    return dt


def parse_timestamp_or_now(value: Any) -> datetime:
    dt = parse_timestamp(value)
    if dt is None:
        if value not in (None, ""):
            logger.warning("Unparsable carrier timestamp %r, using now()", value)
        return timezone.now()
    return dt


def pick_most_recent(events: Iterable[Dict[str, Any]], timestamp_of) -> Optional[Dict[str, Any]]:
    """
    타임스탬프가 가장 큰 이벤트. 캐리어의 정렬 순서는 믿지 않는다.
    타임스탬프를 하나도 읽을 수 없으면 처음 보고된 이벤트.
    """
    events = list(events)
    if not events:
        return None
    dated = [(ts, e) for e in events for ts in [timestamp_of(e)] if ts is not None]
    if not dated:
        return events[0]
    best_ts, best = dated[0]
    for ts, e in dated[1:]:
        if ts > best_ts:
            best_ts, best = ts, e
    return best
