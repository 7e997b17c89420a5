# domains/tracking/serializers.py
from __future__ import annotations

from rest_framework import serializers

from .models import TrackedShipment
from .reports import FORMATS, validate_report_request


# ---------------------------
# 출력용
# ---------------------------
class TrackedShipmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = TrackedShipment
        fields = (
            "id",
            "tracking_number",
            "carrier",
            "is_active",
            "deactivated_reason",
            "is_delivered",
            "error_count",
            "last_error",
            "last_updated",
            "created_at",
            "updated_at",
            "last_response",
        )


# ---------------------------
# 입력용: 조회 옵션 (쿼리스트링 또는 JSON body)
# ---------------------------
class TrackOptionsSerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False, allow_null=True)
    date_to = serializers.DateField(required=False, allow_null=True)
    proof_of_delivery = serializers.BooleanField(required=False, allow_null=True)
    include_detailed_view = serializers.BooleanField(required=False, allow_null=True)

    def validate(self, attrs):
        date_from = attrs.get("date_from")
        date_to = attrs.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({"date_to": "date_to must not be earlier than date_from"})
        return attrs


# ---------------------------
# 입력용: 리포트 요청
# 필드 선언은 스키마 문서용, 실제 검증은 validate_report_request
# ---------------------------
class CarrierIdsSerializer(serializers.Serializer):
    carrier = serializers.CharField()
    ids = serializers.ListField(child=serializers.CharField())


class ReportRequestSerializer(serializers.Serializer):
    format = serializers.ChoiceField(choices=FORMATS)
    ids_by_carrier = CarrierIdsSerializer(many=True)

    def to_internal_value(self, data):
        errors = validate_report_request(data)
        if errors:
            raise serializers.ValidationError({"errors": errors})
        return {"format": data["format"], "ids_by_carrier": data["ids_by_carrier"]}


class SchedulerStatusSerializer(serializers.Serializer):
    running = serializers.BooleanField()
    pass_in_progress = serializers.BooleanField()


class StatisticsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    active = serializers.IntegerField()
    inactive = serializers.IntegerField()
    by_carrier = serializers.DictField(child=serializers.IntegerField())
