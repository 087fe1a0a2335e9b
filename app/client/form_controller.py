"""
Client-side controller for the kit generation form.

One canonical controller drives every generate page; the per-page
differences (field names, endpoint, copy) live in :class:`FormBindings`.
The catalog and the HTTP client are passed in explicitly.

Flow
----
load_page(query)  → PageContext (or a redirect to the catalog landing view)
submit(form)      → SubmissionResult
                    idle → submitting → success | failure → idle
"""
from __future__ import annotations

import base64
import binascii
import dataclasses
import enum
import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

import httpx
from pydantic import ValidationError

from app.models.schemas import GenerationMode, KitRequest, OutlinePlan, Product
from app.services.catalog import ProductCatalog
from app.services.docx_builder import DOCX_MEDIA_TYPE
from app.utils.helpers import clean_field, escape_html, safe_filename

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration & result types
# ---------------------------------------------------------------------------

class FormState(str, enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclasses.dataclass
class FormBindings:
    """Field names, endpoint and user-facing copy for one generate page."""

    business_name_field: str = "businessName"
    industry_field: str = "industry"
    state_field: str = "state"
    employees_field: str = "employees"
    risks_field: str = "risks"

    product_param: str = "product"
    paid_param: str = "paid"

    endpoint: str = "/generateKit"
    landing_url: str = "/#kits"

    submit_label: str = "Generate my kit"
    busy_label: str = "Generating your kit..."
    title_template: str = "Generate your {name}"
    paid_subtitle: str = (
        "Thank you for your purchase. Please answer a few questions so we can "
        "prepare your Word document."
    )
    preview_subtitle: str = (
        "You can generate a preview kit here, but we recommend purchasing first "
        "to receive the full document."
    )

    validation_message: str = (
        "Please fill in business name, industry and state/region before generating."
    )
    generation_failed_message: str = (
        "Sorry, something went wrong generating your kit. Please try again, "
        "or contact enquiries@comply-desk.com."
    )
    download_missing_message: str = (
        "Your kit was generated but a download was not returned. Please email "
        "enquiries@comply-desk.com with your order details."
    )
    download_failed_message: str = (
        "Your outline is ready below, but the Word download failed. Please try "
        "again, or contact enquiries@comply-desk.com."
    )
    busy_message: str = "Your kit is already being generated. Please wait."

    fallback_filename: str = "comply-desk-kit.docx"
    # False on pages without an outline container
    render_outline: bool = True
    # Where downloads are written; None keeps them in memory only
    download_dir: Optional[Path] = None


@dataclasses.dataclass
class SubmitControl:
    """State of the form's submit button."""

    label: str
    disabled: bool = False


@dataclasses.dataclass
class PageContext:
    """Display state resolved from the page's query string."""

    product: Optional[Product] = None
    is_paid: bool = False
    title: str = ""
    subtitle: str = ""
    badge: Optional[str] = None
    redirect_to: Optional[str] = None

    @property
    def should_redirect(self) -> bool:
        return self.redirect_to is not None


@dataclasses.dataclass
class DownloadArtifact:
    """A decoded document ready to hand to the user."""

    filename: str
    content: bytes
    media_type: str = DOCX_MEDIA_TYPE
    path: Optional[Path] = None


@dataclasses.dataclass
class SubmissionResult:
    """Outcome of one form submission."""

    state: FormState
    messages: List[str] = dataclasses.field(default_factory=list)
    error: Optional[str] = None
    plan: Optional[OutlinePlan] = None
    outline_html: Optional[str] = None
    download: Optional[DownloadArtifact] = None
    download_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is FormState.SUCCESS


class FormValidationError(ValueError):
    """A required form field is empty.  ``str(exc)`` is the user message."""


class KitGenerationFailed(Exception):
    """The generator answered with an error status or an unusable body."""


# ---------------------------------------------------------------------------
# Outline rendering
# ---------------------------------------------------------------------------

def render_outline_html(plan: Union[OutlinePlan, Mapping[str, Any]]) -> str:
    """
    Render an outline as HTML.  Every piece of text is escaped; the plan
    comes from a language model and must never produce live markup.
    """
    if isinstance(plan, OutlinePlan):
        data: Mapping[str, Any] = plan.model_dump(exclude_none=True)
    else:
        data = plan

    parts: List[str] = ['<div class="kit-outline">']

    summary = data.get("summary")
    if summary:
        parts.append("<h3>Summary</h3>")
        parts.append(f"<p>{escape_html(summary)}</p>")

    sections = data.get("sections")
    if isinstance(sections, list) and sections:
        parts.append("<h3>Sections</h3>")
        for section in sections:
            if not isinstance(section, Mapping):
                continue
            parts.append('<div class="kit-outline-section">')
            if section.get("title"):
                parts.append(f"<h4>{escape_html(section['title'])}</h4>")
            if section.get("description"):
                parts.append(f"<p>{escape_html(section['description'])}</p>")
            items = section.get("items")
            if isinstance(items, list) and items:
                parts.append("<ul>")
                parts.extend(f"<li>{escape_html(item)}</li>" for item in items)
                parts.append("</ul>")
            parts.append("</div>")

    implementation = data.get("implementation")
    if implementation:
        parts.append("<h3>Implementation</h3>")
        parts.append(f"<p>{escape_html(implementation)}</p>")

    notes = data.get("notes")
    disclaimer = data.get("disclaimer")
    if notes or disclaimer:
        parts.append("<h3>Notes</h3>")
        if notes:
            parts.append(f"<p>{escape_html(notes)}</p>")
        if disclaimer:
            parts.append(f'<p class="kit-disclaimer"><em>{escape_html(disclaimer)}</em></p>')

    parts.append("</div>")
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class KitFormController:
    """Drives one generate page: product lookup, submission, outline, download."""

    def __init__(
        self,
        catalog: ProductCatalog,
        client: httpx.AsyncClient,
        bindings: Optional[FormBindings] = None,
    ) -> None:
        self.catalog = catalog
        self.client = client
        self.bindings = bindings or FormBindings()
        self.submit_control = SubmitControl(label=self.bindings.submit_label)
        self.page: Optional[PageContext] = None
        self._state = FormState.IDLE

    @property
    def state(self) -> FormState:
        return self._state

    # ------------------------------------------------------------------
    # Page load
    # ------------------------------------------------------------------

    def load_page(self, query: Mapping[str, str]) -> PageContext:
        """
        Resolve the product named in *query*.  A missing or unknown slug
        sends the visitor back to the catalog instead of raising.
        """
        b = self.bindings
        slug = clean_field(query.get(b.product_param))
        product = self.catalog.get(slug)

        if product is None:
            logger.info("load_page: no product for slug %r, redirecting to %s", slug, b.landing_url)
            self.page = PageContext(redirect_to=b.landing_url)
            return self.page

        is_paid = clean_field(query.get(b.paid_param)) == "1"
        self.page = PageContext(
            product=product,
            is_paid=is_paid,
            title=b.title_template.format(name=product.name),
            subtitle=b.paid_subtitle if is_paid else b.preview_subtitle,
            badge=product.badge,
        )
        return self.page

    # ------------------------------------------------------------------
    # Form handling
    # ------------------------------------------------------------------

    def read_form(self, form: Mapping[str, Any]) -> KitRequest:
        """Trim the five fields and build the request for the loaded product."""
        b = self.bindings
        business_name = clean_field(form.get(b.business_name_field))
        industry = clean_field(form.get(b.industry_field))
        state = clean_field(form.get(b.state_field))
        employees = clean_field(form.get(b.employees_field))
        risks = clean_field(form.get(b.risks_field))

        if not business_name or not industry or not state:
            raise FormValidationError(b.validation_message)

        page = self.page
        if page is None or page.product is None:
            raise RuntimeError("load_page() must resolve a product before submitting")

        return KitRequest(
            product_slug=page.product.slug,
            product_name=page.product.name,
            business_name=business_name,
            industry=industry,
            state=state,
            employees=employees,
            risks=risks,
            mode=GenerationMode.FULL if page.is_paid else GenerationMode.PREVIEW,
        )

    async def submit(self, form: Mapping[str, Any]) -> SubmissionResult:
        """
        Submit *form* and return the outcome.  Validation, network and server
        failures become a ``FAILURE`` result; the submit control is always
        restored.
        """
        b = self.bindings
        if self.submit_control.disabled:
            return SubmissionResult(state=FormState.FAILURE, messages=[b.busy_message])

        try:
            kit_request = self.read_form(form)
        except FormValidationError as exc:
            return SubmissionResult(state=FormState.FAILURE, messages=[str(exc)])

        original_label = self.submit_control.label
        self.submit_control.disabled = True
        self.submit_control.label = b.busy_label
        self._state = FormState.SUBMITTING
        try:
            result = await self._generate(kit_request)
        finally:
            self.submit_control.disabled = False
            self.submit_control.label = original_label
            self._state = FormState.IDLE

        return result

    async def _generate(self, kit_request: KitRequest) -> SubmissionResult:
        b = self.bindings
        payload = kit_request.model_dump(by_alias=True, mode="json")

        try:
            resp = await self.client.post(b.endpoint, json=payload)
            if not resp.is_success:
                raise KitGenerationFailed(resp.text or "Generation failed")
            data = resp.json()
            if not isinstance(data, dict):
                raise KitGenerationFailed("Unexpected response body from the generator")
        except (httpx.HTTPError, KitGenerationFailed, ValueError) as exc:
            logger.error("Kit generation failed for %s: %s", kit_request.product_slug, exc)
            return SubmissionResult(
                state=FormState.FAILURE,
                messages=[b.generation_failed_message],
                error=str(exc),
            )

        result = SubmissionResult(state=FormState.SUCCESS)
        plan_fields = {k: v for k, v in data.items() if k not in ("docxBase64", "filename")}
        try:
            result.plan = OutlinePlan.model_validate(plan_fields)
        except ValidationError:
            logger.warning("Outline in response does not match the expected shape")
        if b.render_outline:
            result.outline_html = render_outline_html(plan_fields)

        encoded = data.get("docxBase64")
        if not encoded:
            logger.error("Unexpected response from generateKit: no docxBase64 in %s", sorted(data))
            result.download_error = "missing"
            result.messages.append(b.download_missing_message)
            return result

        try:
            artifact = self.decode_download(encoded, data.get("filename"))
            if b.download_dir is not None:
                self.save_download(artifact, b.download_dir)
        except (binascii.Error, ValueError, TypeError, OSError) as exc:
            logger.error("Kit download failed for %s: %s", kit_request.product_slug, exc)
            result.download_error = str(exc)
            result.messages.append(b.download_failed_message)
            return result

        result.download = artifact
        return result

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def decode_download(self, encoded: str, filename: Optional[str]) -> DownloadArtifact:
        """Decode the base64 document; raises ``binascii.Error`` on bad input."""
        content = base64.b64decode(encoded, validate=True)
        return DownloadArtifact(
            filename=safe_filename(filename, self.bindings.fallback_filename),
            content=content,
        )

    @staticmethod
    def save_download(artifact: DownloadArtifact, directory: Path) -> Path:
        """Write *artifact* into *directory* and record where it landed."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / artifact.filename
        target.write_bytes(artifact.content)
        artifact.path = target
        logger.info("Saved %s (%d bytes)", target, len(artifact.content))
        return target
