# domains/tracking/normalizers/purolator.py
"""
Purolator TrackingByPinsOrReferences (SOAP) 응답 → TrackingResponse

SOAP 클라이언트 결과는 다음 중 하나로 들어온다.
  - [ {ResponseInformation, SearchResults} ]
  - [ {TrackingByPinsOrReferencesResult: {...}} ]
  - 위의 [0] 없이 dict 하나
컬렉션 필드(Errors, SearchResults, packages, events)는 리스트/단일/래퍼 모두 허용.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..canonical import (
    Address,
    Event,
    Location,
    Package,
    ResponseStatus,
    Shipment,
    TrackingResponse,
)
from .common import (
    as_dict,
    first_text,
    format_error,
    one_or_many,
    parse_timestamp,
    parse_timestamp_or_now,
    pick_most_recent,
    text,
)

logger = logging.getLogger(__name__)

DELIVERED_CODES = frozenset({"DEL"})


def normalize(raw: Any) -> TrackingResponse:
    result = _unwrap(raw)
    if not result or ("ResponseInformation" not in result and "SearchResults" not in result):
        logger.warning("Purolator payload without ResponseInformation/SearchResults")
        return TrackingResponse.error(
            "Invalid SOAP response structure",
            ["No valid response data found in SOAP response"],
        )

    errors: List[str] = []
    response_info = as_dict(result.get("ResponseInformation"))
    # Code/code 둘 다 허용
    for err in one_or_many(response_info.get("Errors"), "Error"):
        errors.append(
            format_error(
                first_text(err.get("Code"), err.get("code")),
                first_text(err.get("Description"), err.get("description")),
                first_text(err.get("AdditionalInformation"), err.get("additionalInformation")),
            )
        )

    search_results = one_or_many(result.get("SearchResults"), "SearchResult")
    first = search_results[0] if search_results else None

    if first is not None:
        for err in one_or_many(first.get("shipmentErrors"), "shipmentError", "ShipmentError"):
            code = first_text(err.get("code"), err.get("Code")) or "ERROR"
            description = first_text(err.get("description"), err.get("Description")) or "Unknown error"
            errors.append(f"{code}: {description}")

    shipment_raw = as_dict(first.get("Shipment")) if first is not None else {}

    if errors:
        status, description = ResponseStatus.ERROR, "Tracking request completed with errors"
    elif first is None:
        status, description = ResponseStatus.NOT_FOUND, "No search results found"
    elif text(first.get("status")).upper() == "NOT_FOUND":
        status, description = ResponseStatus.NOT_FOUND, "Shipment not found"
    elif not shipment_raw:
        status, description = ResponseStatus.NOT_FOUND, "No shipment information found"
    else:
        status, description = ResponseStatus.SUCCESS, "Tracking information retrieved successfully"

    return TrackingResponse(
        status=status,
        description=description,
        errors=errors,
        shipment=_shipment(shipment_raw),
    )


def _unwrap(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, (list, tuple)):
        raw = raw[0] if raw else None
    result = as_dict(raw)
    if "TrackingByPinsOrReferencesResult" in result:
        result = as_dict(result.get("TrackingByPinsOrReferencesResult"))
    return result


def _shipment(raw: Dict[str, Any]) -> Shipment:
    if not raw:
        return Shipment()
    status = as_dict(raw.get("status"))
    details = as_dict(raw.get("details"))
    code = text(status.get("code"))
    return Shipment(
        status_code=code,
        status_description=text(status.get("description")),
        is_delivered=code.upper() in DELIVERED_CODES,
        created_date=parse_timestamp_or_now(raw.get("shipmentCreated")),
        shipper=_address(details.get("shipper")),
        receiver=_address(details.get("receiver")),
        packages=[_package(p) for p in one_or_many(raw.get("packages"), "package", "Package")],
    )


def _address(raw: Any) -> Address:
    raw = as_dict(raw)
    return Address(
        city=text(raw.get("city")),
        region=text(raw.get("provinceState")),
        country_code=text(raw.get("countryCode")),
        postal_code=text(raw.get("postalZipCode")),
    )


def _package(raw: Dict[str, Any]) -> Package:
    events = one_or_many(raw.get("events"), "event", "Event")
    if not events and raw.get("lastEvent"):
        events = one_or_many(raw.get("lastEvent"))

    latest = pick_most_recent(events, lambda e: parse_timestamp(e.get("dateTime")))
    status = as_dict(raw.get("status"))
    pin = text(raw.get("pin"))
    return Package(
        id=pin or None,
        status_code=text(status.get("code")),
        status_description=text(status.get("description")),
        most_recent_event=_event(latest) if latest else Event(),
    )


def _event(raw: Dict[str, Any]) -> Event:
    loc = as_dict(raw.get("location"))
    return Event(
        timestamp=parse_timestamp_or_now(raw.get("dateTime")),
        code=text(raw.get("code")),
        description=text(raw.get("description")),
        location=Location(
            street1=text(loc.get("StreetAddress1")),
            street2=text(loc.get("StreetAddress2")),
            city=text(loc.get("City")),
            region=text(loc.get("provinceState") or loc.get("ProvinceState")),
            country_code=text(loc.get("CountryCode")),
            postal_code=text(loc.get("PostalCode")),
        ),
    )
