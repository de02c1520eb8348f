"""
Trust API Endpoints
===================

Composite trust scores, authenticity verification and packaging analysis.
"""

from __future__ import annotations

import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from product_trust.api.audit import (
    audit_error,
    audit_input,
    audit_output,
    next_request_id,
)
from product_trust.api.schemas.requests import (
    AnalyzePackagingRequest,
    TamperingFeedbackRequest,
    TrustScoreRequest,
    VerifyProductRequest,
)
from product_trust.api.schemas.responses import (
    ErrorResponse,
    PackagingAnalysisResponse,
    TrustScoreResponse,
    VerifyProductResponse,
)
from product_trust.application.trust_service import ProductTrustService
from product_trust.domain.errors import TrustEngineError
from product_trust.domain.results import TamperingFeedback
from product_trust.infrastructure.dependencies import get_trust_service

router = APIRouter()
logger = logging.getLogger(__name__)

TrustService = Annotated[ProductTrustService, Depends(get_trust_service)]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


@router.post(
    "/trust-score",
    response_model=TrustScoreResponse,
    status_code=status.HTTP_200_OK,
    summary="Calculate a composite trust score",
    description=(
        "Combine authenticity, packaging integrity, freshness and social proof "
        "into one 0-100 score. Unavailable signals are reported as missing and "
        "their weight is redistributed."
    ),
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse, "description": "No signal could be obtained"},
    },
)
async def calculate_trust_score(
    request: TrustScoreRequest,
    service: TrustService,
) -> TrustScoreResponse:
    request_id = next_request_id()
    start = time.perf_counter()
    audit_input(
        request_id,
        "trust-score",
        Product=request.product_id,
        Serial=request.serial_number,
        Images=len(request.images),
        Category=request.category or "default",
    )

    try:
        score = await service.calculate_trust_score(request.product_id, request.to_context())
    except TrustEngineError as e:
        audit_error(request_id, e)
        raise
    except Exception as e:
        audit_error(request_id, e)
        logger.exception(f"Trust score failed for {request.product_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Trust score calculation failed: {e!s}",
        ) from e

    elapsed_ms = _elapsed_ms(start)
    audit_output(
        request_id,
        f"{score.overall:.2f} (confidence {score.confidence:.2f}, "
        f"missing {len(score.missing_signals)}, cached {score.cached})",
        elapsed_ms,
    )
    return TrustScoreResponse(
        trust_score=score,
        processing_time_ms=round(elapsed_ms, 2),
        cached=score.cached,
    )


@router.post(
    "/verify",
    response_model=VerifyProductResponse,
    status_code=status.HTTP_200_OK,
    summary="Verify product authenticity",
    description=(
        "Run the verification cascade (manufacturer registry, distributed "
        "ledger, visual comparison) and return the verdict with its trail."
    ),
    responses={400: {"model": ErrorResponse}},
)
async def verify_product(
    request: VerifyProductRequest,
    service: TrustService,
) -> VerifyProductResponse:
    request_id = next_request_id()
    start = time.perf_counter()
    audit_input(
        request_id,
        "verify",
        Product=request.product_id,
        Serial=request.serial_number,
        Images=len(request.images),
    )

    try:
        result = await service.verify_product(
            request.product_id,
            request.serial_number,
            request.batch_code,
            request.images,
        )
    except TrustEngineError as e:
        audit_error(request_id, e)
        raise
    except Exception as e:
        audit_error(request_id, e)
        logger.exception(f"Verification failed for {request.product_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Verification failed: {e!s}",
        ) from e

    elapsed_ms = _elapsed_ms(start)
    suspected = service.is_suspected_counterfeit(result)
    audit_output(
        request_id,
        f"{'AUTHENTIC' if result.is_authentic else 'NOT AUTHENTIC'} "
        f"({result.confidence:.2f}, {len(result.trail)} attempt(s))",
        elapsed_ms,
    )
    return VerifyProductResponse(
        product_id=request.product_id,
        serial_number=request.serial_number,
        result=result,
        suspected_counterfeit=suspected,
        processing_time_ms=round(elapsed_ms, 2),
    )


@router.post(
    "/packaging/analyze",
    response_model=PackagingAnalysisResponse,
    status_code=status.HTTP_200_OK,
    summary="Analyze packaging for tampering",
)
async def analyze_packaging(
    request: AnalyzePackagingRequest,
    service: TrustService,
) -> PackagingAnalysisResponse:
    request_id = next_request_id()
    start = time.perf_counter()
    audit_input(
        request_id,
        "packaging-analyze",
        Product=request.product_id or "unknown",
        Images=len(request.images),
    )

    signal = await service.analyze_packaging(request.images)

    elapsed_ms = _elapsed_ms(start)
    if signal.value is not None:
        audit_output(request_id, f"{signal.value.status} ({signal.value.confidence:.2f})", elapsed_ms)
    else:
        audit_output(request_id, f"ABSENT ({signal.reason})", elapsed_ms)
    return PackagingAnalysisResponse(
        present=signal.present,
        result=signal.value,
        reason=signal.reason,
        processing_time_ms=round(elapsed_ms, 2),
    )


@router.post(
    "/packaging/feedback",
    response_model=TamperingFeedback,
    status_code=status.HTTP_201_CREATED,
    summary="Report a wrong tampering classification",
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def record_tampering_feedback(
    request: TamperingFeedbackRequest,
    service: TrustService,
) -> TamperingFeedback:
    request_id = next_request_id()
    start = time.perf_counter()
    audit_input(
        request_id,
        "packaging-feedback",
        Product=request.product_id,
        Scan=request.scan_id,
        Kind=request.kind,
    )
    try:
        feedback = await service.record_tampering_feedback(
            request.scan_id,
            request.product_id,
            request.reported_status,
            request.kind,
            request.note,
        )
    except TrustEngineError as e:
        audit_error(request_id, e)
        raise
    audit_output(request_id, f"RECORDED {feedback.reported_status}", _elapsed_ms(start))
    return feedback


@router.get(
    "/packaging/feedback/{product_id}",
    response_model=list[TamperingFeedback],
    summary="List tampering corrections for a product",
)
async def list_tampering_feedback(
    product_id: str,
    service: TrustService,
) -> list[TamperingFeedback]:
    return await service.list_tampering_feedback(product_id)
