# tests/test_tracking_normalizers_ups.py
from datetime import datetime, timezone as dt_timezone

from domains.tracking.canonical import ResponseStatus
from domains.tracking.normalizers.ups import normalize, parse_ups_datetime


def _activity(date, time, code, desc="", city=""):
    return {
        "date": date,
        "time": time,
        "status": {"type": "I", "code": code, "description": desc},
        "location": {"address": {"city": city, "stateProvince": "GA", "countryCode": "US", "postalCode": "30301"}},
    }


def _payload(packages, **shipment_extra):
    return {
        "trackResponse": {
            "shipment": [{"inquiryNumber": "1Z999AA10123456784", "package": packages, **shipment_extra}]
        }
    }


PACKAGE = {
    "trackingNumber": "1Z999AA10123456784",
    "currentStatus": {"code": "005", "description": "In Transit"},
    "packageAddress": [
        {"type": "ORIGIN", "address": {"city": "Atlanta", "stateProvince": "GA", "countryCode": "US"}},
        {"type": "DESTINATION", "address": {"city": "Seattle", "stateProvince": "WA", "country": "US"}},
    ],
    "activity": [
        _activity("20240102", "081500", "DP", "Departed", "Atlanta"),
        _activity("20240103", "101010", "AR", "Arrived", "Memphis"),
        _activity("20240101", "120000", "MP", "Label created", "Atlanta"),
    ],
}


def test_success_maps_current_status_and_latest_activity():
    res = normalize(_payload([PACKAGE]))

    assert res.status == ResponseStatus.SUCCESS
    assert res.description == "In Transit"
    assert res.errors == []

    sh = res.shipment
    assert sh.status_code == "005"
    assert sh.is_delivered is False
    # 생성일 = 가장 오래된 activity
    assert sh.created_date == datetime(2024, 1, 1, 12, 0, tzinfo=dt_timezone.utc)
    assert sh.shipper.city == "Atlanta"
    assert sh.receiver.region == "WA"
    assert sh.receiver.country_code == "US"

    (pkg,) = sh.packages
    assert pkg.id == "1Z999AA10123456784"
    assert pkg.most_recent_event.code == "AR"
    assert pkg.most_recent_event.location.city == "Memphis"
    assert pkg.most_recent_event.timestamp == datetime(2024, 1, 3, 10, 10, 10, tzinfo=dt_timezone.utc)


def test_delivered_code():
    pkg = dict(PACKAGE, currentStatus={"code": "011", "description": "Delivered"})
    res = normalize(_payload([pkg]))

    assert res.shipment.is_delivered is True
    assert res.shipment.packages[0].status_description == "Delivered"


def test_package_matching_inquiry_number_is_selected():
    other = dict(PACKAGE, trackingNumber="1ZOTHER")
    res = normalize(_payload([other, PACKAGE]), tracking_number="1Z999AA10123456784")

    assert res.shipment.packages[0].id == "1Z999AA10123456784"


def test_falls_back_to_first_package_when_nothing_matches():
    other = dict(PACKAGE, trackingNumber="1ZOTHER")
    res = normalize(_payload([other]), tracking_number="1ZNOPE")

    assert res.status == ResponseStatus.SUCCESS
    assert res.shipment.packages[0].id == "1ZOTHER"


def test_warnings_become_errors():
    res = normalize(_payload([PACKAGE], warnings=[{"code": "TW0001", "message": "Tracking Information Not Found"}]))

    assert res.status == ResponseStatus.ERROR
    assert res.errors == ["TW0001: Tracking Information Not Found"]


def test_empty_shipment_list_is_not_found():
    res = normalize({"trackResponse": {"shipment": []}})

    assert res.status == ResponseStatus.NOT_FOUND
    assert res.description == "No shipment data found in UPS response"
    assert res.shipment.packages == []


def test_shipment_without_packages_is_not_found():
    res = normalize(_payload([]))

    assert res.status == ResponseStatus.NOT_FOUND
    assert res.description == "No package data found in UPS response"


def test_garbage_payload_does_not_raise():
    for raw in (None, "x", [], {"trackResponse": None}):
        res = normalize(raw)
        assert res.status == ResponseStatus.NOT_FOUND
        assert res.shipment is not None


def test_unparsable_activity_dates():
    pkg = dict(PACKAGE, activity=[_activity("2024", "", "X1"), _activity(None, None, "X2")])
    res = normalize(_payload([pkg]))

    event = res.shipment.packages[0].most_recent_event
    # 날짜를 하나도 못 읽으면 처음 보고된 activity
    assert event.code == "X1"
    assert event.timestamp is not None


def test_parse_ups_datetime():
    assert parse_ups_datetime("20240315", "0930") == datetime(2024, 3, 15, 9, 30, tzinfo=dt_timezone.utc)
    assert parse_ups_datetime("20241315", "000000") is None
    assert parse_ups_datetime("", "000000") is None
    assert parse_ups_datetime("2024-03-15", None) is None
