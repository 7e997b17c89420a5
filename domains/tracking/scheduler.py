# domains/tracking/scheduler.py
"""
재조회(reconciliation) 스케줄러

- 시작 즉시 1회 + 이후 REFRESH_INTERVAL_MINUTES 마다 패스 실행 (데몬 스레드)
- 한 번에 한 패스만: 캐시(Redis) 락으로 가드, 웹 프로세스와 Celery 워커가 같은 락을 본다.
  락은 임대 방식이라 운송장 하나 처리할 때마다 연장하고, finally 에서 항상 해제
- 패스 안에서는 운송장을 하나씩 순차 처리하고 사이사이 INTER_CALL_DELAY_SECONDS 대기
- 운송장 하나의 실패는 record_error 로 남기고 다음 건 진행
- stop() 은 타이머 루프가 돌린 패스만 중단시킨다. 수동/Celery 패스는 끝까지 간다
Celery beat 로 돌릴 때는 tasks.reconcile_tracked_shipments 가 run_pass() 를 호출한다.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.cache import cache
from django.db import close_old_connections

from .canonical import ResponseStatus
from .carriers import TrackingRequest, get_registry
from .exceptions import PersistenceError
from .store import store as default_store

logger = logging.getLogger(__name__)

PASS_LOCK_KEY = "tracking:reconcile-pass"


@dataclass
class PassResult:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    duration_seconds: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PassLock:
    """프로세스 간 공유되는 패스 락 (cache.add 는 원자적)"""

    def __init__(self, key: str = PASS_LOCK_KEY, timeout: Optional[int] = None):
        self.key = key
        self.timeout = int(
            timeout if timeout is not None else settings.TRACKING["PASS_LOCK_TIMEOUT_SECONDS"]
        )

    def acquire(self) -> Optional[str]:
        token = uuid.uuid4().hex
        if cache.add(self.key, token, timeout=self.timeout):
            return token
        return None

    def extend(self, token: str) -> None:
        if cache.get(self.key) == token:
            cache.touch(self.key, timeout=self.timeout)

    def release(self, token: str) -> None:
        # 임대가 만료돼 다른 패스가 잡은 락은 지우지 않는다
        if cache.get(self.key) == token:
            cache.delete(self.key)

    def locked(self) -> bool:
        return cache.get(self.key) is not None


class ReconciliationScheduler:
    def __init__(
        self,
        registry=None,
        store=None,
        interval_minutes: Optional[float] = None,
        stale_minutes: Optional[float] = None,
        inter_call_delay: Optional[float] = None,
        lock: Optional[PassLock] = None,
    ):
        cfg = settings.TRACKING
        self._registry = registry
        self.store = store or default_store
        self.interval_minutes = float(
            interval_minutes if interval_minutes is not None else cfg["REFRESH_INTERVAL_MINUTES"]
        )
        self.stale_minutes = float(stale_minutes if stale_minutes is not None else self.interval_minutes)
        self.inter_call_delay = float(
            inter_call_delay if inter_call_delay is not None else cfg["INTER_CALL_DELAY_SECONDS"]
        )

        self._pass_lock = lock or PassLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def registry(self):
        return self._registry if self._registry is not None else get_registry()

    # ─────────────────────────────────────────────────────────────
    # 타이머
    # ─────────────────────────────────────────────────────────────
    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            logger.info("Reconciliation scheduler already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name="tracking-reconciliation", daemon=True
        )
        self._thread.start()
        logger.info(
            "Reconciliation scheduler started (every %s min, stale after %s min)",
            self.interval_minutes,
            self.stale_minutes,
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """타이머 루프의 패스는 현재 운송장까지만 처리하고 빠져나온다."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.info("Reconciliation scheduler stopped")

    def _loop(self) -> None:
        interval = self.interval_minutes * 60
        while not self._stop_event.is_set():
            try:
                self.run_pass(cancel=self._stop_event)
            except Exception:
                # 타이머 루프는 절대 죽지 않는다. 다음 틱에서 재시도.
                logger.exception("Reconciliation pass crashed")
            finally:
                close_old_connections()
            if self._stop_event.wait(interval):
                break

    # ─────────────────────────────────────────────────────────────
    # 패스
    # ─────────────────────────────────────────────────────────────
    def trigger_pass(self) -> None:
        """
        수동 실행 (fire-and-forget).
        내장 타이머 모드면 이 프로세스의 스레드로, 아니면 Celery 워커로 보낸다.
        """
        if not settings.TRACKING["SCHEDULER_AUTOSTART"]:
            from .tasks import reconcile_tracked_shipments

            reconcile_tracked_shipments.delay()
            logger.info("Reconciliation pass queued on Celery")
            return
        threading.Thread(
            target=self._run_pass_logged, name="tracking-reconciliation-manual", daemon=True
        ).start()

    def _run_pass_logged(self) -> None:
        try:
            self.run_pass()
        except Exception:
            logger.exception("Manual reconciliation pass crashed")
        finally:
            close_old_connections()

    def run_pass(self, cancel: Optional[threading.Event] = None) -> Optional[PassResult]:
        """
        패스 1회 실행. 다른 패스(다른 프로세스 포함)가 돌고 있으면 None.
        cancel 이 set 되면 다음 운송장으로 넘어가기 전에 멈춘다.
        """
        token = self._pass_lock.acquire()
        if token is None:
            logger.info("Reconciliation pass already in progress, skipping")
            return None
        cancel = cancel or threading.Event()
        started = time.monotonic()
        result = PassResult()
        try:
            try:
                stale = self.store.list_stale(self.stale_minutes)
            except PersistenceError:
                logger.error("Could not load stale shipments, pass aborted")
                return result

            result.total = len(stale)
            logger.info("Reconciliation pass started: %d stale shipments", result.total)

            for index, row in enumerate(stale):
                if cancel.is_set():
                    logger.info("Scheduler stopping, pass abandoned after %d shipments", index)
                    break
                self._pass_lock.extend(token)
                outcome = self._reconcile_one(row["tracking_number"], row["carrier"])
                if outcome is None:
                    result.skipped += 1
                    continue
                if outcome:
                    result.succeeded += 1
                else:
                    result.failed += 1
                if self.inter_call_delay > 0 and index < len(stale) - 1:
                    self._pause(cancel)
            return result
        finally:
            result.duration_seconds = round(time.monotonic() - started, 3)
            self._pass_lock.release(token)
            logger.info(
                "Reconciliation pass finished: %d ok, %d failed, %d skipped in %.2fs",
                result.succeeded,
                result.failed,
                result.skipped,
                result.duration_seconds,
            )

    def _pause(self, cancel: threading.Event) -> None:
        cancel.wait(self.inter_call_delay)

    def _reconcile_one(self, tracking_number: str, carrier: str) -> Optional[bool]:
        """True=성공, False=실패(기록됨), None=미지원 캐리어로 건너뜀"""
        registry = self.registry
        if not registry.is_supported(carrier):
            logger.info("Skipping %s:%s, carrier not supported", carrier, tracking_number)
            return None

        try:
            response = registry.resolve(carrier).track(TrackingRequest(tracking_ids=[tracking_number]))
        except Exception as e:
            logger.warning("Carrier call failed for %s:%s: %s", carrier, tracking_number, e)
            self._record_error(tracking_number, carrier, str(e) or type(e).__name__)
            return False

        try:
            if response.status == ResponseStatus.ERROR:
                message = ", ".join(response.errors) or response.description
                self.store.record_error(tracking_number, carrier, message)
                return False
            self.store.upsert(tracking_number, carrier, response)
            return True
        except PersistenceError:
            logger.error("Could not persist result for %s:%s", carrier, tracking_number)
            return False

    def _record_error(self, tracking_number: str, carrier: str, message: str) -> None:
        try:
            self.store.record_error(tracking_number, carrier, message)
        except PersistenceError:
            logger.error("Could not record error for %s:%s", carrier, tracking_number)

    # ─────────────────────────────────────────────────────────────
    # 상태
    # ─────────────────────────────────────────────────────────────
    def status(self) -> Dict[str, bool]:
        thread = self._thread
        return {
            "running": bool(thread is not None and thread.is_alive() and not self._stop_event.is_set()),
            "pass_in_progress": self._pass_lock.locked(),
        }


_scheduler: Optional[ReconciliationScheduler] = None
_scheduler_lock = threading.Lock()


def get_scheduler() -> ReconciliationScheduler:
    global _scheduler
    if _scheduler is None:
        with _scheduler_lock:
            if _scheduler is None:
                _scheduler = ReconciliationScheduler()
    return _scheduler
