# domains/tracking/carriers/__init__.py
from .base import CarrierAdapter, TrackingRequest
from .registry import CarrierRegistry, build_registry, carrier_key, get_registry, reset_registry

__all__ = [
    "CarrierAdapter",
    "TrackingRequest",
    "CarrierRegistry",
    "build_registry",
    "carrier_key",
    "get_registry",
    "reset_registry",
]
