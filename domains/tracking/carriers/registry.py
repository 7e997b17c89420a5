# domains/tracking/carriers/registry.py
from __future__ import annotations

import logging
import threading
from typing import Dict, FrozenSet, Mapping, Optional

from django.conf import settings
from django.utils.module_loading import import_string

from ..exceptions import CarrierNotSupported
from .base import CarrierAdapter

logger = logging.getLogger(__name__)


def _norm(code: str) -> str:
    return (code or "").strip().lower().replace("-", "_").replace(" ", "")


# 흔한 별칭 → 표준 코드
_ALIASES = {
    "puro": "purolator",
    "united_parcel_service": "ups",
    "unitedparcelservice": "ups",
}


def carrier_key(carrier: str) -> str:
    """저장/조회에 쓰는 표준 캐리어 키 (별칭 포함 정규화)"""
    key = _norm(carrier)
    return _ALIASES.get(key, key)


class CarrierRegistry:
    """
    carrier id → 어댑터 인스턴스.
    등록은 프로세스 시작 시 한 번, 조회는 여러 스레드에서 동시에 해도 안전.
    """

    def __init__(self):
        self._adapters: Dict[str, CarrierAdapter] = {}
        self._lock = threading.Lock()

    def register(self, carrier: str, adapter: CarrierAdapter) -> None:
        key = self.key_for(carrier)
        with self._lock:
            # 조회 쪽은 락 없이 읽으므로 dict 를 통째로 교체
            adapters = dict(self._adapters)
            adapters[key] = adapter
            self._adapters = adapters
        logger.info("Registered carrier adapter %s -> %s", key, type(adapter).__name__)

    def key_for(self, carrier: str) -> str:
        return carrier_key(carrier)

    def resolve(self, carrier: str) -> CarrierAdapter:
        adapter = self._adapters.get(self.key_for(carrier))
        if adapter is None:
            raise CarrierNotSupported(carrier, self.list_supported())
        return adapter

    def is_supported(self, carrier: str) -> bool:
        return self.key_for(carrier) in self._adapters

    def list_supported(self) -> FrozenSet[str]:
        return frozenset(self._adapters)


def build_registry(carriers: Optional[Mapping[str, str]] = None) -> CarrierRegistry:
    """settings.TRACKING["CARRIERS"] (id → dotted path) 로 레지스트리 구성"""
    if carriers is None:
        carriers = settings.TRACKING["CARRIERS"]
    registry = CarrierRegistry()
    for carrier, dotted in carriers.items():
        adapter_cls = import_string(dotted)
        registry.register(carrier, adapter_cls())
    return registry


_default: Optional[CarrierRegistry] = None
_default_lock = threading.Lock()


def get_registry() -> CarrierRegistry:
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = build_registry()
    return _default


def reset_registry() -> None:
    """테스트/설정 변경 후 재구성용"""
    global _default
    with _default_lock:
        _default = None
