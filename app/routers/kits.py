"""
Kit generation endpoint.

Routes
------
POST /generateKit   — outline + base64 .docx → KitResponse JSON
*    /generateKit   — any other method → 405 (plain text)

Error bodies are plain text, matching what the generate page reads with
``res.text()``:
  400  "Invalid JSON body." / "Missing required fields." / "Unknown product."
  500  "Error: <message>"
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from app.config import settings
from app.models.schemas import KitRequest
from app.services.catalog import ProductCatalog, get_catalog
from app.services.kit_generator import KitGenerator, get_kit_generator

logger = logging.getLogger(__name__)

router = APIRouter()

GENERATE_PATH = "/generateKit"


def get_enforced_catalog() -> Optional[ProductCatalog]:
    """Catalog used to reject unknown slugs, or None when the check is off."""
    if not settings.ENFORCE_KNOWN_PRODUCTS:
        return None
    return get_catalog()


def _plain(status_code: int, text: str, **kwargs) -> PlainTextResponse:
    return PlainTextResponse(text, status_code=status_code, **kwargs)


# ---------------------------------------------------------------------------
# POST /generateKit
# ---------------------------------------------------------------------------

@router.post(GENERATE_PATH, status_code=status.HTTP_200_OK)
async def generate_kit(
    request: Request,
    generator: KitGenerator = Depends(get_kit_generator),
    catalog: Optional[ProductCatalog] = Depends(get_enforced_catalog),
):
    """
    Generate a compliance kit outline and its Word document.

    Validation failures are answered before any call to the language model.
    """
    raw_body = await request.body()
    try:
        body = json.loads(raw_body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.info("generate_kit: rejected malformed JSON body (%d bytes)", len(raw_body))
        return _plain(status.HTTP_400_BAD_REQUEST, "Invalid JSON body.")

    if not isinstance(body, dict):
        return _plain(status.HTTP_400_BAD_REQUEST, "Missing required fields.")

    try:
        kit_request = KitRequest.model_validate(body)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        logger.info("generate_kit: invalid value for %s: %s", field, error["msg"])
        return _plain(status.HTTP_400_BAD_REQUEST, f"Invalid field: {field}.")

    missing = kit_request.missing_fields()
    if missing:
        logger.info("generate_kit: missing required fields %s", ", ".join(missing))
        return _plain(status.HTTP_400_BAD_REQUEST, "Missing required fields.")

    if catalog is not None and kit_request.product_slug not in catalog:
        logger.info("generate_kit: unknown product %r", kit_request.product_slug)
        return _plain(status.HTTP_400_BAD_REQUEST, "Unknown product.")

    try:
        result = await generator.generate(kit_request)
    except Exception as exc:
        logger.error("generate_kit error: %s", exc, exc_info=True)
        return _plain(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Error: {exc}")

    return JSONResponse(status_code=status.HTTP_200_OK, content=result.to_payload())


# ---------------------------------------------------------------------------
# Other methods — 405
# ---------------------------------------------------------------------------

@router.api_route(
    GENERATE_PATH,
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def generate_kit_method_not_allowed():
    return _plain(
        status.HTTP_405_METHOD_NOT_ALLOWED,
        "Method Not Allowed",
        headers={"Allow": "POST"},
    )
