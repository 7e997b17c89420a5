import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="TrackedShipment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("tracking_number", models.CharField(max_length=64)),
                ("carrier", models.CharField(max_length=40)),
                ("last_response", models.JSONField(default=dict)),
                ("last_updated", models.DateTimeField(default=django.utils.timezone.now)),
                ("is_delivered", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "deactivated_reason",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("", "Active"),
                            ("errors", "Error threshold reached"),
                            ("user", "Deactivated by user"),
                        ],
                        default="",
                        max_length=10,
                    ),
                ),
                ("error_count", models.PositiveIntegerField(default=0)),
                ("last_error", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["is_active", "is_delivered", "last_updated"], name="tracking_stale_idx"),
                    models.Index(fields=["carrier"], name="tracking_carrier_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("tracking_number", "carrier"), name="uq_tracking_carrier"),
                ],
            },
        ),
    ]
