"""
Fraud API Endpoints
===================

Scan recording and on-demand fraud pattern checks.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from product_trust.api.audit import (
    audit_error,
    audit_input,
    audit_output,
    next_request_id,
)
from product_trust.api.schemas.requests import RecordScanRequest
from product_trust.api.schemas.responses import (
    ErrorResponse,
    FraudCheckResponse,
    ScanRecordedResponse,
)
from product_trust.application.trust_service import ProductTrustService
from product_trust.domain.errors import TrustEngineError
from product_trust.domain.results import FraudAlert
from product_trust.infrastructure.dependencies import get_trust_service

router = APIRouter()
logger = logging.getLogger(__name__)

TrustService = Annotated[ProductTrustService, Depends(get_trust_service)]

_ERRORS = {400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}


def _describe(alert: FraudAlert | None) -> str:
    if alert is None:
        return "NO ALERT"
    return f"ALERT {alert.kind} {alert.severity}"


async def _run_check(
    operation: str,
    subject: str,
    check: Callable[[str], Awaitable[FraudAlert | None]],
) -> FraudAlert | None:
    request_id = next_request_id()
    start = time.perf_counter()
    audit_input(request_id, operation, Subject=subject)
    try:
        alert = await check(subject)
    except TrustEngineError as e:
        audit_error(request_id, e)
        raise
    except RuntimeError as e:
        # Detector without a configured source
        audit_error(request_id, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    audit_output(request_id, _describe(alert), (time.perf_counter() - start) * 1000)
    return alert


@router.post(
    "/scans",
    response_model=ScanRecordedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a scan",
    description="Store a serial number scan and run duplicate-serial detection for it.",
    responses=_ERRORS,
)
async def record_scan(
    request: RecordScanRequest,
    service: TrustService,
) -> ScanRecordedResponse:
    request_id = next_request_id()
    start = time.perf_counter()
    scan = request.to_record()
    audit_input(
        request_id,
        "scan",
        Serial=scan.serial_number,
        Product=scan.product_id or "unknown",
        Location=f"{scan.location.latitude:.4f},{scan.location.longitude:.4f}",
    )
    try:
        alert = await service.record_scan(scan)
    except TrustEngineError as e:
        audit_error(request_id, e)
        raise
    audit_output(request_id, _describe(alert), (time.perf_counter() - start) * 1000)
    return ScanRecordedResponse(
        scan=scan,
        serial_flagged=await service.is_serial_flagged(scan.serial_number),
        alert=alert,
    )


@router.get(
    "/fraud/serials/{serial_number}",
    response_model=FraudCheckResponse,
    summary="Check a serial number for clones",
    responses=_ERRORS,
)
async def detect_duplicate_serials(
    serial_number: str,
    service: TrustService,
) -> FraudCheckResponse:
    alert = await _run_check("duplicate-serials", serial_number, service.detect_duplicate_serials)
    return FraudCheckResponse(
        subject=serial_number,
        alert=alert,
        flagged=await service.is_serial_flagged(serial_number),
    )


@router.get(
    "/fraud/supply-chain/{product_id}",
    response_model=FraudCheckResponse,
    summary="Check a product's custody chain",
    responses=_ERRORS,
)
async def detect_supply_chain_anomaly(
    product_id: str,
    service: TrustService,
) -> FraudCheckResponse:
    alert = await _run_check("supply-chain", product_id, service.detect_supply_chain_anomaly)
    return FraudCheckResponse(subject=product_id, alert=alert, flagged=alert is not None)


@router.get(
    "/fraud/reviews/{product_id}",
    response_model=FraudCheckResponse,
    summary="Check a product's reviews for coordinated fraud",
    responses=_ERRORS,
)
async def detect_review_fraud(
    product_id: str,
    service: TrustService,
) -> FraudCheckResponse:
    alert = await _run_check("review-fraud", product_id, service.detect_review_fraud)
    return FraudCheckResponse(subject=product_id, alert=alert, flagged=alert is not None)
