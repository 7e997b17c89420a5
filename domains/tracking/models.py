# domains/tracking/models.py
from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class DeactivationReason(models.TextChoices):
    NONE = "", "Active"
    ERRORS = "errors", "Error threshold reached"
    USER = "user", "Deactivated by user"


class TrackedShipment(models.Model):
    """
    (tracking_number, carrier) 당 1건.
    last_response 는 정규화된 TrackingResponse.to_dict() 그대로 보관 (opaque blob).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tracking_number = models.CharField(max_length=64)
    carrier = models.CharField(max_length=40)

    last_response = models.JSONField(default=dict)
    last_updated = models.DateTimeField(default=timezone.now)

    # last_response.shipment.is_delivered 사본 (stale 조회용 인덱스)
    is_delivered = models.BooleanField(default=False)

    is_active = models.BooleanField(default=True)
    deactivated_reason = models.CharField(
        max_length=10,
        choices=DeactivationReason.choices,
        default=DeactivationReason.NONE,
        blank=True,
    )
    error_count = models.PositiveIntegerField(default=0)
    last_error = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(
                fields=["is_active", "is_delivered", "last_updated"],
                name="tracking_stale_idx",
            ),
            models.Index(fields=["carrier"], name="tracking_carrier_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=("tracking_number", "carrier"), name="uq_tracking_carrier"
            )
        ]

    def __str__(self) -> str:
        return f"{self.carrier}:{self.tracking_number}"
