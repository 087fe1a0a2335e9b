"""
Health check endpoint.
"""
from fastapi import APIRouter
from datetime import datetime
import logging

from app.models.schemas import HealthCheckResponse
from app.services.catalog import CatalogError, ProductCatalog
from app.services.outline_service import OpenAIOutlineService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check():
    """
    Health check endpoint to verify configuration.

    Does not call the language model; it only reports whether a credential
    is configured and whether the catalog loads.

    Returns:
        HealthCheckResponse with credential and catalog status
    """
    llm_configured = OpenAIOutlineService().is_configured

    product_count = 0
    catalog_ok = True
    try:
        product_count = len(ProductCatalog.from_file())
    except CatalogError as e:
        logger.error(f"Catalog health check failed: {e}")
        catalog_ok = False

    overall_status = "healthy" if llm_configured and catalog_ok else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        llm_configured=llm_configured,
        products=product_count,
        timestamp=datetime.utcnow()
    )
