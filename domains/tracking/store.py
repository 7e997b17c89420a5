# domains/tracking/store.py
"""
TrackedShipment 영속화 전담.

스케줄러/뷰/리포트는 모델을 직접 쓰지 않고 반드시 이 모듈을 거친다.
- upsert / record_error 는 키 단위로 직렬화 (select_for_update / 단일 UPDATE)
- DB 장애는 PersistenceError 로 감싸서 올린다
"""
from __future__ import annotations

import functools
import logging
from datetime import timedelta
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Union

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import BooleanField, Case, CharField, Count, F, Q, Value, When
from django.utils import timezone

from .canonical import TrackingResponse
from .exceptions import PersistenceError
from .models import DeactivationReason, TrackedShipment

logger = logging.getLogger(__name__)

Record = Union[TrackedShipment, MappingProxyType]


def _persistence(fn):
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except DatabaseError as e:
            logger.exception("Tracking store operation %s failed", fn.__name__)
            raise PersistenceError(f"{fn.__name__}: {e}") from e

    return wrapper


class TrackingStore:
    def __init__(self, max_error_count: Optional[int] = None):
        self._max_error_count = max_error_count

    @property
    def max_error_count(self) -> int:
        if self._max_error_count is not None:
            return self._max_error_count
        return int(settings.TRACKING["MAX_ERROR_COUNT"])

    @staticmethod
    def _key(tracking_number: str, carrier: str):
        return TrackedShipment.objects.filter(tracking_number=tracking_number, carrier=carrier)

    # ─────────────────────────────────────────────────────────────
    # 쓰기
    # ─────────────────────────────────────────────────────────────
    @_persistence
    def upsert(self, tracking_number: str, carrier: str, response: TrackingResponse) -> TrackedShipment:
        """
        있으면 last_response 덮어쓰기 + 카운터 리셋, 없으면 활성 레코드 생성.
        에러 임계치로 꺼진 레코드는 다시 켜고, 사용자가 끈 레코드는 그대로 둔다.
        """
        payload = response.to_dict()
        now = timezone.now()
        with transaction.atomic():
            obj, created = TrackedShipment.objects.select_for_update().get_or_create(
                tracking_number=tracking_number,
                carrier=carrier,
                defaults={
                    "last_response": payload,
                    "last_updated": now,
                    "is_delivered": response.shipment.is_delivered,
                },
            )
            if created:
                logger.info("Tracking record created %s:%s", carrier, tracking_number)
                return obj

            obj.last_response = payload
            obj.last_updated = now
            obj.is_delivered = response.shipment.is_delivered
            obj.error_count = 0
            obj.last_error = None
            if not obj.is_active and obj.deactivated_reason == DeactivationReason.ERRORS:
                obj.is_active = True
                obj.deactivated_reason = DeactivationReason.NONE
                logger.info("Tracking record %s:%s reactivated after success", carrier, tracking_number)
            obj.save()
        return obj

    @_persistence
    def record_error(self, tracking_number: str, carrier: str, message: str) -> Optional[TrackedShipment]:
        """
        error_count += 1, last_error/last_updated 갱신.
        증가 후 값이 임계치 이상이면 같은 UPDATE 안에서 is_active=False.
        """
        # SET 절의 F()/조건식은 갱신 전 값 기준
        reaching = Q(error_count__gte=self.max_error_count - 1)
        now = timezone.now()
        updated = self._key(tracking_number, carrier).update(
            error_count=F("error_count") + 1,
            last_error=message,
            last_updated=now,
            updated_at=now,
            is_active=Case(
                When(reaching, then=Value(False)),
                default=F("is_active"),
                output_field=BooleanField(),
            ),
            deactivated_reason=Case(
                When(reaching & Q(is_active=True), then=Value(DeactivationReason.ERRORS.value)),
                default=F("deactivated_reason"),
                output_field=CharField(),
            ),
        )
        if not updated:
            return None

        obj = self._key(tracking_number, carrier).first()
        if obj is not None and not obj.is_active and obj.error_count == self.max_error_count:
            logger.warning(
                "Tracking record %s:%s deactivated after %d consecutive errors",
                carrier,
                tracking_number,
                obj.error_count,
            )
        return obj

    @_persistence
    def delete(self, tracking_number: str, carrier: str) -> bool:
        deleted, _ = self._key(tracking_number, carrier).delete()
        return deleted > 0

    @_persistence
    def deactivate(self, tracking_number: str, carrier: str) -> Optional[TrackedShipment]:
        self._key(tracking_number, carrier).update(
            is_active=False,
            deactivated_reason=DeactivationReason.USER,
            updated_at=timezone.now(),
        )
        return self._key(tracking_number, carrier).first()

    @_persistence
    def reactivate(self, tracking_number: str, carrier: str) -> Optional[TrackedShipment]:
        self._key(tracking_number, carrier).update(
            is_active=True,
            deactivated_reason=DeactivationReason.NONE,
            error_count=0,
            last_error=None,
            updated_at=timezone.now(),
        )
        return self._key(tracking_number, carrier).first()

    # ─────────────────────────────────────────────────────────────
    # 읽기
    # ─────────────────────────────────────────────────────────────
    @_persistence
    def get(
        self,
        tracking_number: str,
        carrier: str,
        fields: Optional[Iterable[str]] = None,
        read_only: bool = False,
    ) -> Optional[Record]:
        """
        read_only=True 이면 모델 인스턴스 대신 읽기 전용 매핑을 돌려준다 (save 불가).
        fields 로 필요한 컬럼만 읽을 수 있다.
        """
        fields = tuple(fields or ())
        qs = self._key(tracking_number, carrier)
        if read_only:
            row = qs.values(*fields).first()
            return MappingProxyType(row) if row is not None else None
        if fields:
            qs = qs.only(*fields)
        return qs.first()

    @_persistence
    def list_stale(self, older_than_minutes: Optional[float] = None) -> List[Dict[str, str]]:
        """활성 + 미배송 + last_updated < cutoff, 오래된 순. 키 필드만."""
        if older_than_minutes is None:
            older_than_minutes = settings.TRACKING["REFRESH_INTERVAL_MINUTES"]
        cutoff = timezone.now() - timedelta(minutes=older_than_minutes)
        qs = (
            TrackedShipment.objects.filter(is_active=True, last_updated__lt=cutoff)
            .exclude(is_delivered=True)
            .order_by("last_updated")
            .values("tracking_number", "carrier")
        )
        return list(qs)

    @_persistence
    def statistics(self) -> Dict[str, Any]:
        total = TrackedShipment.objects.count()
        active = TrackedShipment.objects.filter(is_active=True).count()
        by_carrier = {
            row["carrier"]: row["n"]
            for row in TrackedShipment.objects.order_by()
            .values("carrier")
            .annotate(n=Count("id"))
        }
        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "by_carrier": by_carrier,
        }


store = TrackingStore()
