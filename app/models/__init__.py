"""Schema models for the Comply-Desk kit generator."""
from app.models.schemas import (
    GenerationMode,
    KitRequest,
    OutlineSection,
    OutlinePlan,
    KitResponse,
    Product,
    KitPreviewResponse,
    HealthCheckResponse,
)

__all__ = [
    "GenerationMode",
    "KitRequest",
    "OutlineSection",
    "OutlinePlan",
    "KitResponse",
    "Product",
    "KitPreviewResponse",
    "HealthCheckResponse",
]
