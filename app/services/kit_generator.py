"""
Kit generation pipeline: prompt → LLM outline → .docx → response.

Each call is independent; nothing is cached or persisted between requests.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

from app.config import settings
from app.models.schemas import KitRequest, KitResponse
from app.services.docx_builder import encode_docx
from app.services.outline_service import OpenAIOutlineService

logger = logging.getLogger(__name__)

# Keys the response owns; a model echoing them must not override the document.
_RESERVED_KEYS = ("docxBase64", "docx_base64", "filename")


def kit_filename(product_slug: str) -> str:
    """Download name for a kit: ``comply-desk-<slug>.docx``."""
    return f"{settings.FILENAME_PREFIX}{product_slug}.docx"


class KitGenerator:
    """Orchestrates one generation request end to end."""

    def __init__(self, outline_service: Optional[OpenAIOutlineService] = None) -> None:
        self.outline_service = outline_service or OpenAIOutlineService()

    async def generate(self, request: KitRequest) -> KitResponse:
        """
        Generate the outline and document for a validated *request*.

        Raises ``OutlineServiceError`` subclasses for credential and upstream
        failures; malformed model output is absorbed by the fallback plan.
        """
        t0 = time.monotonic()
        logger.info(
            "Generating kit %s for %r (mode=%s)",
            request.product_slug,
            request.business_name,
            request.mode.value if request.mode else "unspecified",
        )

        plan = await self.outline_service.generate_outline(request)
        docx_base64 = encode_docx(plan, request.product_name, request.business_name)

        fields = plan.model_dump(exclude_unset=True)
        for reserved in _RESERVED_KEYS:
            fields.pop(reserved, None)

        response = KitResponse(
            **fields,
            docxBase64=docx_base64,
            filename=kit_filename(request.product_slug),
        )

        logger.info(
            "Kit %s generated: %d sections, %d base64 chars (%.2f s)",
            request.product_slug,
            len(plan.sections or []),
            len(docx_base64),
            time.monotonic() - t0,
        )
        return response


def get_kit_generator() -> KitGenerator:
    """FastAPI dependency; tests override it to inject a mocked transport."""
    return KitGenerator()
