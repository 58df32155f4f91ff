"""
Images API Router

Quota and provider diagnostics endpoints.

Endpoints:
    GET  /quota            Today's generation usage for the caller.
    POST /test-connection  One live generation call against the provider.
    POST /diagnostics      Configuration check and error analysis.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notecanvas.api.deps import get_pipeline
from notecanvas.core.database import get_db
from notecanvas.core.security import get_current_owner
from notecanvas.schemas.images import (
    ConnectionTestRequest,
    ConnectionTestResult,
    DiagnosticsRequest,
    DiagnosticsResponse,
    ErrorAnalysisResponse,
    ProviderStatusResponse,
    QuotaStatus,
)
from notecanvas.services import diagnostics
from notecanvas.services.generation import ImageGenerationPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/quota", response_model=QuotaStatus)
async def read_quota(
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    pipeline: ImageGenerationPipeline = Depends(get_pipeline),
) -> QuotaStatus:
    return await pipeline.quota(db, owner_id)


@router.post("/test-connection", response_model=ConnectionTestResult)
async def test_connection(
    request: ConnectionTestRequest | None = None,
    owner_id: str = Depends(get_current_owner),
    pipeline: ImageGenerationPipeline = Depends(get_pipeline),
) -> ConnectionTestResult:
    """
    Run a single generation call and report the outcome.

    Does not store an image or count against the daily quota.
    """
    request = request or ConnectionTestRequest()
    result = await pipeline.image_provider.test_connection(request.prompt)
    return ConnectionTestResult(**asdict(result))


@router.post("/diagnostics", response_model=DiagnosticsResponse)
async def run_diagnostics(
    request: DiagnosticsRequest | None = None,
    owner_id: str = Depends(get_current_owner),
    pipeline: ImageGenerationPipeline = Depends(get_pipeline),
) -> DiagnosticsResponse:
    """
    Check the provider setup and explain an error message.

    Returns the provider status, the error analysis, an optional live test
    result, recommendations and whether generation can proceed.
    """
    request = request or DiagnosticsRequest()
    provider = pipeline.image_provider

    status = await diagnostics.check_configuration(provider)
    analysis = diagnostics.analyze_error(request.error_message)
    test = None
    if request.test_generation:
        test = await provider.test_connection(ConnectionTestRequest().prompt)

    logger.info(
        "Diagnostics: key_valid=%s credits=%s model=%s error_type=%s",
        status.api_key_valid,
        status.has_credits,
        status.model_available,
        analysis.error_type,
    )

    return DiagnosticsResponse(
        status=ProviderStatusResponse(**asdict(status)),
        analysis=ErrorAnalysisResponse(**asdict(analysis)),
        test=ConnectionTestResult(**asdict(test)) if test is not None else None,
        recommendations=diagnostics.build_recommendations(status, analysis, test),
        can_proceed=diagnostics.can_proceed(status, analysis),
    )
