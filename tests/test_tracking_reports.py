# tests/test_tracking_reports.py
import csv
import io
from unittest.mock import MagicMock

import pytest

from domains.tracking.canonical import Package, ResponseStatus
from domains.tracking.exceptions import PersistenceError
from domains.tracking.reports import (
    CSV_HEADERS,
    ReportAggregator,
    format_location,
    generate_report,
    render_csv,
    validate_report_request,
)


class TestValidation:
    def test_valid_request(self):
        assert validate_report_request({"format": "csv", "ids_by_carrier": [{"carrier": "ups", "ids": ["1"]}]}) == []

    def test_collects_every_field_error(self):
        errors = validate_report_request(
            {
                "format": "xml",
                "ids_by_carrier": [{"ids": ["1"]}, {"carrier": "ups"}, {"carrier": "ups", "ids": "1"}],
            }
        )

        assert errors == [
            'Invalid format. Must be "json" or "csv"',
            'ids_by_carrier[0]: Missing required field "carrier"',
            'ids_by_carrier[1]: Missing required field "ids"',
            'ids_by_carrier[2]: "ids" must be an array',
        ]

    def test_missing_fields(self):
        assert validate_report_request({}) == [
            "Missing required field: format",
            "Missing required field: ids_by_carrier",
        ]
        assert validate_report_request({"format": "json", "ids_by_carrier": {}}) == [
            "ids_by_carrier must be an array"
        ]
        assert validate_report_request([]) == ["Request body must be an object"]


@pytest.mark.django_db
class TestAggregation:
    def test_rows_for_stored_missing_and_multi_package(self, tracking_store, make_response):
        two_packages = make_response()
        two_packages.shipment.packages.append(Package(id="PKG-2", status_code="DEL", status_description="Delivered"))
        tracking_store.upsert("A", "ups", two_packages)
        tracking_store.upsert("B", "purolator", make_response(status=ResponseStatus.NOT_FOUND, packages=[]))
        tracking_store.record_error("B", "purolator", "E1: bad")

        report = ReportAggregator(store=tracking_store).build(
            [
                {"carrier": "UPS", "ids": ["A", "MISSING"]},
                {"carrier": "purolator", "ids": [" B "]},
            ]
        )

        rows = report.rows
        assert [(r.carrier, r.tracking_id, r.status) for r in rows] == [
            ("ups", "PKG-1", "ITR"),
            ("ups", "PKG-2", "DEL"),
            ("ups", "MISSING", "NOT_FOUND"),
            ("purolator", "B", "NOT_FOUND"),
        ]
        first = rows[0]
        assert first.last_event_code == "2300"
        assert first.last_event_location == "Toronto, ON, CA"
        assert first.last_event_date.startswith("2022-11-17T10:48:28")

        missing = rows[2]
        assert missing.description == "Tracking ID not found in database"
        assert missing.error == "No tracking data found for ups tracking ID: MISSING"

        assert rows[3].error == "E1: bad"
        assert (report.total_tracked, report.success_count, report.error_count) == (4, 2, 2)

    def test_carrier_alias_finds_record_stored_under_canonical_key(self, tracking_store, make_response):
        tracking_store.upsert("P1", "purolator", make_response())

        report = ReportAggregator(store=tracking_store).build([{"carrier": "Puro", "ids": ["P1"]}])

        assert [(r.carrier, r.status) for r in report.rows] == [("purolator", "ITR")]
        assert report.success_count == 1

    def test_storage_failure_yields_error_row_and_continues(self, make_response):
        store = MagicMock()
        store.get.side_effect = [PersistenceError("get: db down"), None]

        report = ReportAggregator(store=store).build([{"carrier": "ups", "ids": ["A", "B"]}])

        assert [r.status for r in report.rows] == ["ERROR", "NOT_FOUND"]
        assert report.rows[0].description == "Database error"
        assert report.rows[0].error == "get: db down"

    def test_report_reads_only_from_store(self, tracking_store, make_response, monkeypatch):
        tracking_store.upsert("A", "ups", make_response())
        # 리포트는 캐리어를 호출하지 않는다
        monkeypatch.setattr(
            "domains.tracking.carriers.registry.get_registry",
            lambda: pytest.fail("report must not resolve carriers"),
        )

        out = generate_report({"format": "json", "ids_by_carrier": [{"carrier": "ups", "ids": ["A"]}]}, store=tracking_store)

        assert out["format"] == "json"
        assert out["total_tracked"] == 1
        assert out["success_count"] == 1
        assert out["data"][0]["tracking_id"] == "PKG-1"


class TestRendering:
    def test_csv_escapes_commas_and_quotes(self, make_response):
        store = MagicMock()
        store.get.return_value = {
            "last_response": {
                "status": "success",
                "shipment": {
                    "packages": [
                        {
                            "id": "P1",
                            "status_code": "ITR",
                            "status_description": 'Held, "customs"',
                            "most_recent_event": {"code": "X", "location": {"city": "Laval", "region": "QC"}},
                        }
                    ]
                },
            },
            "last_error": None,
        }

        out = generate_report({"format": "csv", "ids_by_carrier": [{"carrier": "purolator", "ids": ["P1"]}]}, store=store)

        assert out["format"] == "csv"
        lines = out["csv"].splitlines()
        assert lines[0] == ",".join(CSV_HEADERS)
        assert lines[1] == 'purolator,P1,ITR,"Held, ""customs""",,X,,"Laval, QC",'
        parsed = list(csv.reader(io.StringIO(out["csv"])))
        assert parsed[1][3] == 'Held, "customs"'

    def test_empty_report_has_header_only(self):
        report = ReportAggregator(store=MagicMock()).build([])

        assert render_csv(report) == ",".join(CSV_HEADERS) + "\n"
        assert report.total_tracked == 0

    def test_format_location(self):
        assert format_location({"city": "Toronto", "region": "", "country_code": "CA"}) == "Toronto, CA"
        assert format_location({}) is None
        assert format_location(None) is None
