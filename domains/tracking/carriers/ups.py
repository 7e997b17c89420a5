# domains/tracking/carriers/ups.py
"""
UPS Track API 어댑터 (OAuth2 client_credentials + REST)

UPS 는 요청당 운송장 1건만 조회한다. 여러 건이 넘어오면 첫 번째만 사용.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from urllib.parse import quote
from typing import Any, Dict, Optional

import requests
from django.conf import settings

from ..canonical import TrackingResponse
from ..exceptions import CarrierConfigurationError, CarrierTransportError, TrackingValidationError
from ..normalizers import ups as ups_normalizer
from .base import CarrierAdapter, TrackingRequest

logger = logging.getLogger(__name__)

TOKEN_SAFETY_MARGIN_SECONDS = 60


class UpsAdapter(CarrierAdapter):
    code = "ups"

    def __init__(self, config: Optional[Dict[str, Any]] = None, timeout: float = 10):
        self._config = config
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_expiry = 0.0
        self._token_lock = threading.Lock()

    @property
    def config(self) -> Dict[str, Any]:
        if self._config is not None:
            return self._config
        return settings.CARRIER_CREDENTIALS["ups"]

    # ------------------------------------------------------------------
    # OAuth2
    # ------------------------------------------------------------------
    def _access_token(self) -> str:
        with self._token_lock:
            if self._token and time.monotonic() < self._token_expiry:
                return self._token

            cfg = self.config
            client_id = cfg.get("CLIENT_ID") or ""
            client_secret = cfg.get("CLIENT_SECRET") or ""
            if not client_id or not client_secret:
                raise CarrierConfigurationError(
                    self.code, "UPS_CLIENT_ID and UPS_CLIENT_SECRET environment variables are required"
                )

            try:
                res = requests.post(
                    cfg["TOKEN_URL"],
                    data={"grant_type": "client_credentials"},
                    auth=(client_id, client_secret),
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    timeout=self.timeout,
                )
                res.raise_for_status()
                data = res.json()
            except (requests.RequestException, ValueError) as e:
                logger.error(f"UPS OAuth2 token request failed: {e}")
                raise CarrierTransportError(self.code, f"UPS authentication failed: {e}") from e

            expires_in = int(data.get("expires_in") or 0)
            self._token = data.get("access_token")
            self._token_expiry = time.monotonic() + max(expires_in - TOKEN_SAFETY_MARGIN_SECONDS, 0)
            return self._token

    # ------------------------------------------------------------------
    # CarrierAdapter
    # ------------------------------------------------------------------
    def fetch_raw(self, request: TrackingRequest) -> Dict[str, Any]:
        tracking_number = request.first_id.strip()
        if not tracking_number:
            raise TrackingValidationError("At least one tracking number is required")
        if len(request.tracking_ids) > 1:
            logger.info(
                "UPS supports one tracking number per call; using %s of %d",
                tracking_number,
                len(request.tracking_ids),
            )

        token = self._access_token()
        url = f"{self.config['BASE_URL'].rstrip('/')}/track/v1/details/{quote(tracking_number, safe='')}"
        params = {
            "locale": "en_US",
            "returnSignature": "false",
            "returnMilestones": "false",
            "returnPOD": "true" if request.proof_of_delivery else "false",
        }
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "transId": uuid.uuid4().hex,
            "transactionSrc": self.config.get("TRANSACTION_SRC") or "e-tracking",
        }

        logger.info(f"Fetching UPS tracking: {tracking_number}")
        try:
            res = requests.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"UPS tracking request failed: {e}")
            raise CarrierTransportError(self.code, str(e)) from e

        if res.status_code == 404:
            # 캐리어가 "없음"이라고 답한 것은 정상 결과 (not_found 로 정규화됨)
            logger.info("UPS returned 404 for %s", tracking_number)
            return {"trackResponse": {"shipment": []}}

        if not (200 <= res.status_code < 300):
            raise CarrierTransportError(self.code, f"UPS API error: {_error_message(res)}")

        try:
            data = res.json()
        except ValueError as e:
            raise CarrierTransportError(self.code, "invalid upstream json") from e
        if isinstance(data, dict):
            data.setdefault("_inquiry", tracking_number)
        return data

    def normalize(self, raw: Any) -> TrackingResponse:
        inquiry = raw.get("_inquiry") if isinstance(raw, dict) else None
        return ups_normalizer.normalize(raw, tracking_number=inquiry)


def _error_message(res) -> str:
    try:
        errors = ((res.json() or {}).get("response") or {}).get("errors") or []
        if errors and errors[0].get("message"):
            return errors[0]["message"]
    except (ValueError, AttributeError):
        return f"HTTP {res.status_code}"
    return f"HTTP {res.status_code}"
