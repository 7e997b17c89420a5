# domains/tracking/carriers/purolator.py
"""
Purolator Shipment Tracking (SOAP, EWS v2) 어댑터

- Basic 인증: activationKey / accountNumber
- RequestContext SOAP 헤더 (Version, Language, GroupID, RequestReference, UserToken)
- 조회 오퍼레이션: TrackingByPinsOrReferences
SOAP 클라이언트는 zeep (requests.Session 위에서 동작).
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

import requests
from django.conf import settings
from requests.auth import HTTPBasicAuth
from zeep import Client, Settings
from zeep.exceptions import Error as ZeepError
from zeep.helpers import serialize_object
from zeep.transports import Transport

from ..canonical import TrackingResponse
from ..exceptions import CarrierConfigurationError, CarrierTransportError, TrackingValidationError
from ..normalizers import purolator as purolator_normalizer
from .base import CarrierAdapter, TrackingRequest

logger = logging.getLogger(__name__)

DETAILED_VIEW = "DetailedView"


class PurolatorAdapter(CarrierAdapter):
    code = "purolator"

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        client_factory: Optional[Callable[[Dict[str, Any]], Any]] = None,
        timeout: float = 15,
    ):
        self._config = config
        self._client_factory = client_factory or self._build_client
        self.timeout = timeout
        self._service = None
        self._lock = threading.Lock()

    @property
    def config(self) -> Dict[str, Any]:
        if self._config is not None:
            return self._config
        return settings.CARRIER_CREDENTIALS["purolator"]

    # ------------------------------------------------------------------
    # SOAP client
    # ------------------------------------------------------------------
    def _build_client(self, cfg: Dict[str, Any]):
        session = requests.Session()
        session.auth = HTTPBasicAuth(cfg["ACTIVATION_KEY"], cfg["ACCOUNT_NUMBER"])
        transport = Transport(session=session, timeout=self.timeout, operation_timeout=self.timeout)
        client = Client(cfg["WSDL_URL"], transport=transport, settings=Settings(strict=False))
        # WSDL 에 박힌 주소 대신 환경별 endpoint 로 바인딩
        service = next(iter(client.wsdl.services.values()))
        port = next(iter(service.ports.values()))
        return client.create_service(str(port.binding.name), cfg["ENDPOINT"])

    def _get_service(self):
        with self._lock:
            if self._service is None:
                cfg = self.config
                missing = [
                    env
                    for key, env in (
                        ("ACTIVATION_KEY", "PUROLATOR_ACTIVATION_KEY"),
                        ("ACCOUNT_NUMBER", "PUROLATOR_ACCOUNT_NUMBER"),
                    )
                    if not cfg.get(key)
                ]
                if missing:
                    raise CarrierConfigurationError(
                        self.code, f"{', '.join(missing)} environment variable is required"
                    )
                try:
                    self._service = self._client_factory(cfg)
                except (ZeepError, requests.RequestException, OSError) as e:
                    logger.exception("Failed to initialize Purolator SOAP client")
                    raise CarrierTransportError(self.code, f"SOAP client init failed: {e}") from e
                logger.info("Purolator SOAP client initialized (%s)", cfg.get("ENDPOINT"))
            return self._service

    def _request_context(self) -> Dict[str, Any]:
        cfg = self.config
        return {
            "RequestContext": {
                "Version": cfg.get("VERSION") or "2.0",
                "Language": cfg.get("LANGUAGE") or "en",
                "GroupID": cfg.get("GROUP_ID") or "e-tracking",
                "RequestReference": str(uuid.uuid4()),
                "UserToken": cfg.get("USER_TOKEN") or "",
            }
        }

    def build_search_criteria(self, request: TrackingRequest) -> Dict[str, Any]:
        searches: List[Dict[str, Any]] = []
        for tracking_id in request.tracking_ids:
            search: Dict[str, Any] = {"trackingId": tracking_id}
            if request.date_from:
                search["shipmentDateFrom"] = request.date_from.isoformat()
            if request.date_to:
                search["shipmentDateTo"] = request.date_to.isoformat()
            if request.proof_of_delivery is not None:
                search["pod"] = bool(request.proof_of_delivery)
            if request.include_detailed_view:
                search["shipmentView"] = DETAILED_VIEW
            if request.account:
                search["account"] = request.account
            if request.destination_postal_code:
                search["destinationPostalZipCode"] = request.destination_postal_code
            if request.event_sort_order:
                search["eventSortOrder"] = request.event_sort_order
            searches.append(search)
        return {"searches": {"search": searches}}

    # ------------------------------------------------------------------
    # CarrierAdapter
    # ------------------------------------------------------------------
    def fetch_raw(self, request: TrackingRequest) -> Any:
        ids = [t.strip() for t in request.tracking_ids if t and t.strip()]
        if not ids:
            raise TrackingValidationError("At least one tracking number is required")
        request = replace(request, tracking_ids=ids)

        service = self._get_service()
        logger.info(f"Fetching Purolator tracking: {', '.join(ids)}")
        try:
            result = service.TrackingByPinsOrReferences(
                TrackingSearchCriteria=self.build_search_criteria(request),
                _soapheaders=self._request_context(),
            )
        except (ZeepError, requests.RequestException) as e:
            logger.error(f"Purolator SOAP request failed: {e}")
            raise CarrierTransportError(self.code, str(e)) from e
        return serialize_object(result, dict)

    def normalize(self, raw: Any) -> TrackingResponse:
        return purolator_normalizer.normalize(raw)
