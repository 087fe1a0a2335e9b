"""
Product catalog loaded from ``products.json``.

The catalog is inert data: an ordered list of kits with display copy and a
checkout link.  Nothing here writes back to the file.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from pydantic import ValidationError

from app.config import settings
from app.models.schemas import KitPreviewResponse, Product

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_NAME = "Comply-Desk kit"

_GENERIC_PREVIEW_NAME = "Comply-Desk Compliance Kits"
_GENERIC_PREVIEW_BODY = [
    "Each kit generates a structured outline plus a ready-to-edit Word document "
    "(.docx) for your small business.",
    "",
    "Use the Purchase button on the kit card to pay via Stripe.",
    "After payment you'll answer a few questions and download your customized pack.",
]
_PREVIEW_FOOTER = [
    "",
    "Use the Purchase button on the kit card to complete payment via Stripe.",
    "After payment, you'll be taken to a short form to customize and download "
    "your Word document.",
]


class CatalogError(Exception):
    """The catalog file is missing or malformed."""


class ProductCatalog:
    """Ordered, read-only collection of :class:`Product` entries."""

    def __init__(self, products: Iterable[Product]) -> None:
        self._products: List[Product] = list(products)
        self._by_slug: Dict[str, Product] = {p.slug: p for p in self._products}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_entries(cls, entries: Iterable[Dict[str, Any]]) -> "ProductCatalog":
        """Build a catalog from raw JSON entries, skipping invalid ones."""
        products: List[Product] = []
        for index, entry in enumerate(entries):
            try:
                products.append(Product.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping catalog entry %d: %s", index, exc.errors()[0]["msg"])
        return cls(products)

    @classmethod
    def from_file(cls, path: Union[str, Path, None] = None) -> "ProductCatalog":
        path = Path(path or settings.PRODUCTS_FILE)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise CatalogError(f"Catalog file not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise CatalogError(f"Catalog file {path} is not valid JSON: {exc}") from exc

        if not isinstance(raw, list):
            raise CatalogError(f"Catalog file {path} must contain a JSON array")
        return cls.from_entries(raw)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[Product]:
        return iter(self._products)

    def __len__(self) -> int:
        return len(self._products)

    def __contains__(self, slug: object) -> bool:
        return slug in self._by_slug

    def get(self, slug: Optional[str]) -> Optional[Product]:
        if not slug:
            return None
        return self._by_slug.get(slug)

    def product_name(self, slug: Optional[str]) -> str:
        product = self.get(slug)
        return product.name if product else DEFAULT_PRODUCT_NAME

    def to_json(self) -> List[Dict[str, Any]]:
        """Entries as served at ``/products.json`` (camelCase, order kept)."""
        return [p.model_dump(by_alias=True, exclude_none=True) for p in self._products]

    # ------------------------------------------------------------------
    # Previews
    # ------------------------------------------------------------------

    def preview(self, slug: Optional[str]) -> KitPreviewResponse:
        """
        "Try before you buy" text for a kit.

        Unknown slugs, or kits without preview bullets, get the generic
        catalog blurb.
        """
        product = self.get(slug)
        if product is None or not product.preview_bullets:
            return KitPreviewResponse(
                slug=None,
                name=_GENERIC_PREVIEW_NAME,
                bullets=[],
                message="\n".join([_GENERIC_PREVIEW_NAME, ""] + _GENERIC_PREVIEW_BODY),
            )

        lines = [product.name, "", "This kit typically includes:"]
        lines += [f"• {bullet}" for bullet in product.preview_bullets]
        lines += _PREVIEW_FOOTER
        return KitPreviewResponse(
            slug=product.slug,
            name=product.name,
            bullets=list(product.preview_bullets),
            message="\n".join(lines),
        )


def get_catalog() -> ProductCatalog:
    """FastAPI dependency: load the catalog configured by ``PRODUCTS_FILE``."""
    return ProductCatalog.from_file()
