# domains/tracking/normalizers/ups.py
"""
UPS Track API (v1 details) JSON → TrackingResponse

https://developer.ups.com/api/reference/tracking/appendix
- trackResponse.shipment[0].package[] 중 조회 번호와 일치하는 패키지, 없으면 첫 번째
- shipment.warnings → errors
- currentStatus.code "011" = Delivered
- activity.date YYYYMMDD / activity.time HHMMSS (UPS 현지 시각, UTC 로 취급)
"""
from __future__ import annotations

import logging
from datetime import datetime
from datetime import timezone as dt_timezone
from typing import Any, Dict, List, Optional

from ..canonical import (
    Address,
    Event,
    Location,
    Package,
    ResponseStatus,
    Shipment,
    TrackingResponse,
)
from .common import as_dict, first_text, format_error, one_or_many, pick_most_recent, text

logger = logging.getLogger(__name__)

DELIVERED_CODES = frozenset({"011"})


def normalize(raw: Any, tracking_number: Optional[str] = None) -> TrackingResponse:
    track_response = as_dict(as_dict(raw).get("trackResponse"))
    shipments = one_or_many(track_response.get("shipment"))
    shipment = shipments[0] if shipments else {}

    errors: List[str] = [
        format_error(w.get("code"), w.get("message"))
        for w in one_or_many(shipment.get("warnings"))
    ]

    packages = one_or_many(shipment.get("package"))
    wanted = text(tracking_number) or text(shipment.get("inquiryNumber"))
    pkg = next((p for p in packages if wanted and text(p.get("trackingNumber")) == wanted), None)
    if pkg is None and packages:
        pkg = packages[0]

    if errors:
        status, description = ResponseStatus.ERROR, "Tracking request completed with errors"
    elif not shipment:
        status, description = ResponseStatus.NOT_FOUND, "No shipment data found in UPS response"
    elif pkg is None:
        status, description = ResponseStatus.NOT_FOUND, "No package data found in UPS response"
    else:
        status = ResponseStatus.SUCCESS
        description = (
            text(as_dict(pkg.get("currentStatus")).get("description"))
            or "Tracking information retrieved"
        )

    return TrackingResponse(
        status=status,
        description=description,
        errors=errors,
        shipment=_shipment(pkg) if pkg is not None else Shipment(),
    )


def parse_ups_datetime(date_s: Any, time_s: Any) -> Optional[datetime]:
    """YYYYMMDD + HHMMSS → aware datetime. 형식이 틀리면 None"""
    d = text(date_s)
    t = text(time_s).ljust(6, "0")[:6]
    if len(d) != 8 or not d.isdigit() or not t.isdigit():
        return None
    try:
        return datetime.strptime(d + t, "%Y%m%d%H%M%S").replace(tzinfo=dt_timezone.utc)
    except ValueError:
        return None


def _activity_ts(activity: Dict[str, Any]) -> Optional[datetime]:
    return parse_ups_datetime(activity.get("date"), activity.get("time"))


def _shipment(pkg: Dict[str, Any]) -> Shipment:
    addresses = one_or_many(pkg.get("packageAddress"))
    origin = next((a for a in addresses if text(a.get("type")).upper() == "ORIGIN"), {})
    destination = next((a for a in addresses if text(a.get("type")).upper() == "DESTINATION"), {})

    activities = one_or_many(pkg.get("activity"))
    dated = [ts for ts in (_activity_ts(a) for a in activities) if ts is not None]
    created = min(dated) if dated else Shipment().created_date

    current = as_dict(pkg.get("currentStatus"))
    code = text(current.get("code"))
    return Shipment(
        status_code=code,
        status_description=text(current.get("description")),
        is_delivered=code in DELIVERED_CODES,
        created_date=created,
        shipper=_address(origin.get("address")),
        receiver=_address(destination.get("address")),
        packages=[_package(pkg, activities)],
    )


def _address(raw: Any) -> Address:
    raw = as_dict(raw)
    return Address(
        city=text(raw.get("city")),
        region=text(raw.get("stateProvince")),
        country_code=first_text(raw.get("countryCode"), raw.get("country")),
        postal_code=text(raw.get("postalCode")),
    )


def _package(pkg: Dict[str, Any], activities: List[Dict[str, Any]]) -> Package:
    current = as_dict(pkg.get("currentStatus"))
    latest = pick_most_recent(activities, _activity_ts)
    return Package(
        id=text(pkg.get("trackingNumber")) or None,
        status_code=text(current.get("code")),
        status_description=text(current.get("description")),
        most_recent_event=_event(latest) if latest else Event(),
    )


def _event(activity: Dict[str, Any]) -> Event:
    status = as_dict(activity.get("status"))
    address = as_dict(as_dict(activity.get("location")).get("address"))
    ts = _activity_ts(activity)
    if ts is None:
        logger.warning("UPS activity with unparsable date/time: %r", activity)
    return Event(
        timestamp=ts or Event().timestamp,
        code=text(status.get("code")),
        description=text(status.get("description")),
        location=Location(
            street1=text(address.get("addressLine1")),
            street2=text(address.get("addressLine2")),
            city=text(address.get("city")),
            region=text(address.get("stateProvince")),
            country_code=first_text(address.get("countryCode"), address.get("country")),
            postal_code=text(address.get("postalCode")),
        ),
    )
