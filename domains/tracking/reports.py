# domains/tracking/reports.py
"""
저장소(TrackingStore) 기준 추적 리포트. 캐리어 실시간 호출은 하지 않는다.

입력: {"format": "json"|"csv", "ids_by_carrier": [{"carrier": "ups", "ids": [...]}]}
출력: 운송장(패키지) 1개당 1행
"""
from __future__ import annotations

import csv
import io
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from django.utils import timezone

from .carriers import carrier_key
from .exceptions import PersistenceError
from .store import store as default_store

logger = logging.getLogger(__name__)

FORMATS = ("json", "csv")

STATUS_NOT_FOUND = "NOT_FOUND"
STATUS_ERROR = "ERROR"
STATUS_UNKNOWN = "UNKNOWN"

CSV_HEADERS = [
    "Carrier",
    "Tracking ID",
    "Status",
    "Description",
    "Last Event Date",
    "Last Event Code",
    "Last Event Description",
    "Last Event Location",
    "Error",
]


@dataclass
class ReportRow:
    carrier: str
    tracking_id: str
    status: str
    description: str
    last_event_date: Optional[str] = None
    last_event_code: Optional[str] = None
    last_event_description: Optional[str] = None
    last_event_location: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status in (STATUS_ERROR, STATUS_NOT_FOUND)

    def csv_values(self) -> List[str]:
        return [
            self.carrier,
            self.tracking_id,
            self.status,
            self.description,
            self.last_event_date or "",
            self.last_event_code or "",
            self.last_event_description or "",
            self.last_event_location or "",
            self.error or "",
        ]


@dataclass
class Report:
    generated_at: datetime
    rows: List[ReportRow] = field(default_factory=list)

    @property
    def total_tracked(self) -> int:
        return len(self.rows)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.rows if r.is_error)

    @property
    def success_count(self) -> int:
        return self.total_tracked - self.error_count


# ─────────────────────────────────────────────────────────────
# 검증 (저장소 접근 전에 필드별로 모두 수집)
# ─────────────────────────────────────────────────────────────
def validate_report_request(data: Any) -> List[str]:
    errors: List[str] = []
    if not isinstance(data, dict):
        return ["Request body must be an object"]

    fmt = data.get("format")
    if not fmt:
        errors.append("Missing required field: format")
    elif fmt not in FORMATS:
        errors.append('Invalid format. Must be "json" or "csv"')

    groups = data.get("ids_by_carrier")
    if groups is None:
        errors.append("Missing required field: ids_by_carrier")
    elif not isinstance(groups, list):
        errors.append("ids_by_carrier must be an array")
    else:
        for index, group in enumerate(groups):
            group = group if isinstance(group, dict) else {}
            if not group.get("carrier"):
                errors.append(f'ids_by_carrier[{index}]: Missing required field "carrier"')
            if group.get("ids") is None:
                errors.append(f'ids_by_carrier[{index}]: Missing required field "ids"')
            elif not isinstance(group.get("ids"), list):
                errors.append(f'ids_by_carrier[{index}]: "ids" must be an array')
    return errors


# ─────────────────────────────────────────────────────────────
# 집계
# ─────────────────────────────────────────────────────────────
class ReportAggregator:
    def __init__(self, store=None):
        self.store = store or default_store

    def build(self, ids_by_carrier: Sequence[Dict[str, Any]]) -> Report:
        report = Report(generated_at=timezone.now())
        for group in ids_by_carrier:
            carrier = carrier_key(str(group["carrier"]))
            for tracking_id in group["ids"]:
                report.rows.extend(self._rows_for(carrier, str(tracking_id).strip()))
        return report

    def _rows_for(self, carrier: str, tracking_id: str) -> List[ReportRow]:
        try:
            record = self.store.get(
                tracking_id, carrier, fields=("last_response", "last_error"), read_only=True
            )
        except PersistenceError as e:
            logger.warning("Report lookup failed for %s:%s: %s", carrier, tracking_id, e)
            return [
                ReportRow(
                    carrier=carrier,
                    tracking_id=tracking_id,
                    status=STATUS_ERROR,
                    description="Database error",
                    error=str(e),
                )
            ]

        if record is None:
            return [
                ReportRow(
                    carrier=carrier,
                    tracking_id=tracking_id,
                    status=STATUS_NOT_FOUND,
                    description="Tracking ID not found in database",
                    error=f"No tracking data found for {carrier} tracking ID: {tracking_id}",
                )
            ]

        response = record.get("last_response") or {}
        last_error = record.get("last_error")
        packages = (response.get("shipment") or {}).get("packages") or []
        if not packages:
            return [
                ReportRow(
                    carrier=carrier,
                    tracking_id=tracking_id,
                    status=(response.get("status") or STATUS_UNKNOWN).upper(),
                    description=response.get("description") or "No package data available",
                    error=last_error,
                )
            ]

        rows = []
        for pkg in packages:
            event = pkg.get("most_recent_event") or {}
            rows.append(
                ReportRow(
                    carrier=carrier,
                    tracking_id=pkg.get("id") or tracking_id,
                    status=pkg.get("status_code") or STATUS_UNKNOWN,
                    description=pkg.get("status_description") or "No description",
                    last_event_date=event.get("timestamp"),
                    last_event_code=event.get("code") or None,
                    last_event_description=event.get("description") or None,
                    last_event_location=format_location(event.get("location")),
                    error=last_error,
                )
            )
        return rows


def format_location(location: Optional[Dict[str, Any]]) -> Optional[str]:
    location = location or {}
    parts = [location.get(k) for k in ("city", "region", "country_code")]
    parts = [p for p in parts if p]
    return ", ".join(parts) if parts else None


# ─────────────────────────────────────────────────────────────
# 렌더링
# ─────────────────────────────────────────────────────────────
def _summary(report: Report, fmt: str) -> Dict[str, Any]:
    return {
        "format": fmt,
        "generated_at": report.generated_at.isoformat(),
        "total_tracked": report.total_tracked,
        "success_count": report.success_count,
        "error_count": report.error_count,
    }


def render_json(report: Report) -> Dict[str, Any]:
    out = _summary(report, "json")
    out["data"] = [asdict(r) for r in report.rows]
    return out


def render_csv(report: Report) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for row in report.rows:
        writer.writerow(row.csv_values())
    return buf.getvalue()


def generate_report(data: Dict[str, Any], store=None) -> Dict[str, Any]:
    """검증된 요청 → {"format", ..., "data"|"csv"}"""
    report = ReportAggregator(store=store).build(data["ids_by_carrier"])
    if data["format"] == "csv":
        out = _summary(report, "csv")
        out["csv"] = render_csv(report)
        return out
    return render_json(report)
