from django.urls import path

from .views import (
    CarrierListAPI,
    SchedulerStatusAPI,
    SchedulerTriggerAPI,
    ShipmentLifecycleAPI,
    ShipmentStatusAPI,
    ShipmentTrackingAPI,
    TrackingReportAPI,
    TrackingStatsAPI,
)

app_name = "tracking"

urlpatterns = [
    # 정적 경로를 먼저 (<carrier>/<tracking_number>/ 와 충돌 방지)
    path("stats/", TrackingStatsAPI.as_view(), name="tracking-stats"),
    path("carriers/", CarrierListAPI.as_view(), name="tracking-carriers"),
    path("scheduler/status/", SchedulerStatusAPI.as_view(), name="scheduler-status"),
    path("scheduler/trigger/", SchedulerTriggerAPI.as_view(), name="scheduler-trigger"),
    path("report/", TrackingReportAPI.as_view(), name="tracking-report"),
    # 운송장 단위
    path(
        "<str:carrier>/<str:tracking_number>/status/",
        ShipmentStatusAPI.as_view(),
        name="shipment-status",
    ),
    path(
        "<str:carrier>/<str:tracking_number>/deactivate/",
        ShipmentLifecycleAPI.as_view(lifecycle_action="deactivate"),
        name="shipment-deactivate",
    ),
    path(
        "<str:carrier>/<str:tracking_number>/reactivate/",
        ShipmentLifecycleAPI.as_view(lifecycle_action="reactivate"),
        name="shipment-reactivate",
    ),
    path(
        "<str:carrier>/<str:tracking_number>/",
        ShipmentTrackingAPI.as_view(),
        name="shipment-tracking",
    ),
]
