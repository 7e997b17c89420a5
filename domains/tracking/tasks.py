# domains/tracking/tasks.py
from __future__ import annotations

import logging
from typing import Any, Dict

from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task(
    name="domains.tracking.tasks.reconcile_tracked_shipments",
    ignore_result=True,
    time_limit=settings.TRACKING["PASS_TIME_LIMIT_SECONDS"],
)
def reconcile_tracked_shipments() -> Dict[str, Any]:
    """
    beat 주기마다 재조회 패스 1회.
    다른 프로세스의 패스와는 캐시 락으로 겹치지 않는다.
    """
    from .scheduler import get_scheduler  # 지연 임포트 (settings 로딩 이후)

    result = get_scheduler().run_pass()
    if result is None:
        return {"skipped": True}
    return result.as_dict()
