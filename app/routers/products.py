"""
Catalog endpoints (read-only).

Routes
------
GET /products.json                  — ordered product descriptors
GET /api/products/{slug}/preview    — "try before you buy" outline preview
"""
import logging

from fastapi import APIRouter, Depends

from app.models.schemas import KitPreviewResponse
from app.services.catalog import ProductCatalog, get_catalog

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/products.json")
async def list_products(catalog: ProductCatalog = Depends(get_catalog)):
    """Serve the catalog in the same shape the static site ships it."""
    return catalog.to_json()


@router.get("/api/products/{slug}/preview", response_model=KitPreviewResponse)
async def preview_product(slug: str, catalog: ProductCatalog = Depends(get_catalog)):
    """
    Preview text for a kit.  Unknown slugs get the generic catalog blurb
    rather than a 404, the same as the homepage helper.
    """
    return catalog.preview(slug)
