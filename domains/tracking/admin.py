from __future__ import annotations

import json

from django.contrib import admin, messages
from django.utils.html import format_html

from . import models
from .store import store


@admin.register(models.TrackedShipment)
class TrackedShipmentAdmin(admin.ModelAdmin):
    list_display = (
        "tracking_number",
        "carrier",
        "status_display",
        "is_delivered",
        "is_active",
        "error_count",
        "last_updated",
    )
    list_filter = ("carrier", "is_active", "is_delivered", "deactivated_reason")
    search_fields = ("tracking_number", "carrier")
    readonly_fields = (
        "id",
        "last_response_display",
        "last_updated",
        "error_count",
        "last_error",
        "created_at",
        "updated_at",
    )
    exclude = ("last_response",)
    ordering = ("last_updated",)
    actions = ("deactivate_selected", "reactivate_selected")

    def status_display(self, obj):
        response = obj.last_response or {}
        return response.get("status") or "-"
    status_display.short_description = "Status"

    def last_response_display(self, obj):
        return format_html(
            "<pre style='white-space:pre-wrap'>{}</pre>",
            json.dumps(obj.last_response or {}, ensure_ascii=False, indent=2),
        )
    last_response_display.short_description = "Last response"

    # 저장소를 거쳐 상태 변경 (카운터 규칙 유지)
    @admin.action(description="Deactivate selected shipments")
    def deactivate_selected(self, request, queryset):
        for obj in queryset:
            store.deactivate(obj.tracking_number, obj.carrier)
        self.message_user(request, f"{queryset.count()} shipment(s) deactivated", messages.SUCCESS)

    @admin.action(description="Reactivate selected shipments (resets error counters)")
    def reactivate_selected(self, request, queryset):
        for obj in queryset:
            store.reactivate(obj.tracking_number, obj.carrier)
        self.message_user(request, f"{queryset.count()} shipment(s) reactivated", messages.SUCCESS)
