# domains/tracking/views.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List

from django.http import HttpResponse
from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import parsers, permissions, serializers, status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .canonical import TrackingResponse
from .exceptions import (
    CarrierTransportError,
    PersistenceError,
    TrackingFailed,
    TrackingValidationError,
)
from .reports import generate_report
from .scheduler import get_scheduler
from .serializers import (
    ReportRequestSerializer,
    SchedulerStatusSerializer,
    StatisticsSerializer,
    TrackedShipmentSerializer,
    TrackOptionsSerializer,
)

logger = logging.getLogger(__name__)


def error_response(description: str, errors: List[str], http_status: int) -> Response:
    """에러도 항상 빈 shipment 를 포함한 TrackingResponse 모양으로"""
    return Response(TrackingResponse.error(description, errors).to_dict(), status=http_status)


def _flatten(detail: Any, prefix: str = "") -> Iterator[str]:
    if isinstance(detail, dict):
        for key, value in detail.items():
            yield from _flatten(value, "" if key in ("errors", "non_field_errors") else key)
    elif isinstance(detail, (list, tuple)):
        for item in detail:
            yield from _flatten(item, prefix)
    else:
        yield f"{prefix}: {detail}" if prefix else str(detail)


OPTION_PARAMETERS = [
    OpenApiParameter(name="date_from", required=False, type=str, description="YYYY-MM-DD"),
    OpenApiParameter(name="date_to", required=False, type=str, description="YYYY-MM-DD"),
    OpenApiParameter(name="proof_of_delivery", required=False, type=bool),
    OpenApiParameter(name="include_detailed_view", required=False, type=bool),
]


# --------------------------------------------------------------------
# 공통: 도메인 예외 → HTTP 응답
# --------------------------------------------------------------------
class TrackingAPIView(APIView):
    permission_classes = [permissions.AllowAny]
    parser_classes = [parsers.JSONParser]

    def handle_exception(self, exc):
        if isinstance(exc, TrackingValidationError):
            return error_response("Validation error", exc.errors, status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, serializers.ValidationError):
            return error_response("Validation error", list(_flatten(exc.detail)), status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, TrackingFailed):
            return Response(exc.response.to_dict(), status=status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, CarrierTransportError):
            logger.error("Carrier transport failure: %s", exc)
            return error_response("Carrier request failed", [str(exc)], status.HTTP_502_BAD_GATEWAY)
        if isinstance(exc, PersistenceError):
            return error_response("Storage unavailable", [str(exc)], status.HTTP_503_SERVICE_UNAVAILABLE)
        if isinstance(exc, APIException):
            return super().handle_exception(exc)
        logger.exception("예상치 못한 서버 오류: %s", exc)
        return error_response("Internal server error", [str(exc)], status.HTTP_500_INTERNAL_SERVER_ERROR)

    def options_from(self, data) -> Dict[str, Any]:
        ser = TrackOptionsSerializer(data=data)
        ser.is_valid(raise_exception=True)
        return ser.validated_data


# --------------------------------------------------------------------
# /api/v1/tracking/{carrier}/{tracking_number}/
#   GET    : 실시간 조회 (저장 X)
#   POST   : 조회 + 저장 (201)
#   DELETE : 추적 중단
# --------------------------------------------------------------------
class ShipmentTrackingAPI(TrackingAPIView):
    @extend_schema(parameters=OPTION_PARAMETERS, responses={200: dict})
    def get(self, request, carrier: str, tracking_number: str):
        options = self.options_from(request.query_params)
        result = services.query(carrier, tracking_number, options)
        if result.is_error:
            return Response(result.to_dict(), status=status.HTTP_400_BAD_REQUEST)
        return Response(result.to_dict(), status=status.HTTP_200_OK)

    @extend_schema(request=TrackOptionsSerializer, responses={201: TrackedShipmentSerializer})
    def post(self, request, carrier: str, tracking_number: str):
        options = self.options_from(request.data or request.query_params)
        record = services.track(carrier, tracking_number, options)
        return Response(
            {
                "success": True,
                "message": "Tracking information stored",
                "data": TrackedShipmentSerializer(record).data,
            },
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(responses={200: dict, 404: dict})
    def delete(self, request, carrier: str, tracking_number: str):
        if services.untrack(carrier, tracking_number):
            return Response(
                {"success": True, "message": "Tracking stopped"}, status=status.HTTP_200_OK
            )
        return Response(
            {"success": False, "message": "Tracking record not found"},
            status=status.HTTP_404_NOT_FOUND,
        )


# --------------------------------------------------------------------
# GET /api/v1/tracking/{carrier}/{tracking_number}/status/
# --------------------------------------------------------------------
class ShipmentStatusAPI(TrackingAPIView):
    @extend_schema(responses={200: TrackedShipmentSerializer, 404: dict})
    def get(self, request, carrier: str, tracking_number: str):
        record = services.status(carrier, tracking_number)
        if record is None:
            return Response({"detail": "Tracking record not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(TrackedShipmentSerializer(record).data, status=status.HTTP_200_OK)


# --------------------------------------------------------------------
# POST /api/v1/tracking/{carrier}/{tracking_number}/deactivate|reactivate/
# --------------------------------------------------------------------
class ShipmentLifecycleAPI(TrackingAPIView):
    lifecycle_action = ""

    @extend_schema(request=None, responses={200: TrackedShipmentSerializer, 404: dict})
    def post(self, request, carrier: str, tracking_number: str):
        handler = services.deactivate if self.lifecycle_action == "deactivate" else services.reactivate
        record = handler(carrier, tracking_number)
        if record is None:
            return Response({"detail": "Tracking record not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(TrackedShipmentSerializer(record).data, status=status.HTTP_200_OK)


# --------------------------------------------------------------------
# GET /api/v1/tracking/stats/ , /carriers/
# --------------------------------------------------------------------
class TrackingStatsAPI(TrackingAPIView):
    @extend_schema(responses={200: StatisticsSerializer})
    def get(self, request):
        return Response(services.stats(), status=status.HTTP_200_OK)


class CarrierListAPI(TrackingAPIView):
    @extend_schema(responses={200: dict})
    def get(self, request):
        return Response({"carriers": services.carriers()}, status=status.HTTP_200_OK)


# --------------------------------------------------------------------
# 스케줄러 제어
# --------------------------------------------------------------------
class SchedulerStatusAPI(TrackingAPIView):
    @extend_schema(responses={200: SchedulerStatusSerializer})
    def get(self, request):
        return Response(get_scheduler().status(), status=status.HTTP_200_OK)


class SchedulerTriggerAPI(TrackingAPIView):
    @extend_schema(request=None, responses={202: dict})
    def post(self, request):
        get_scheduler().trigger_pass()
        return Response(
            {"success": True, "message": "Reconciliation pass triggered"},
            status=status.HTTP_202_ACCEPTED,
        )


# --------------------------------------------------------------------
# POST /api/v1/tracking/report/
# --------------------------------------------------------------------
class TrackingReportAPI(TrackingAPIView):
    @extend_schema(request=ReportRequestSerializer, responses={200: dict})
    def post(self, request):
        ser = ReportRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        report = generate_report(ser.validated_data)
        if report["format"] == "csv":
            stamp = timezone.now().strftime("%Y%m%d-%H%M%S")
            resp = HttpResponse(report["csv"], content_type="text/csv; charset=utf-8")
            resp["Content-Disposition"] = f'attachment; filename="tracking-report-{stamp}.csv"'
            return resp
        return Response(report, status=status.HTTP_200_OK)
