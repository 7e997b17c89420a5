# domains/tracking/apps.py
import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class TrackingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "domains.tracking"
    label = "tracking"

    def ready(self):
        # 워커 없이 단일 프로세스로 돌릴 때만 내장 타이머 스케줄러 기동
        if settings.TRACKING.get("SCHEDULER_AUTOSTART"):
            from .scheduler import get_scheduler

            get_scheduler().start()
            logger.info("In-process reconciliation scheduler started")
