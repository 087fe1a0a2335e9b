"""
Render an OutlinePlan into a Word (.docx) document with python-docx.

Layout
------
Title                 product name (or DEFAULT_KIT_TITLE)
"For: <business>"     only when a business name is given
Heading 1 Summary     + body
Heading 2 <section>   + description body + one List Bullet per item
Heading 2 Implementation plan  + body
Heading 2 Notes & disclaimer   + notes body + disclaimer body

Absent fields are skipped.  Characters Word cannot store (C0 controls other
than tab, newline and carriage return, lone surrogates) are dropped from the
document text only; the outline itself is left as the model returned it.
"""
from __future__ import annotations

import base64
import io
import re
from typing import Optional

from docx import Document

from app.config import settings
from app.models.schemas import OutlinePlan, OutlineSection

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

TITLE_LEVEL = 0
SUMMARY_HEADING = ("Summary", 1)
SECTION_LEVEL = 2
IMPLEMENTATION_HEADING = ("Implementation plan", 2)
NOTES_HEADING = ("Notes & disclaimer", 2)

_XML_INVALID = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff]")


def _xml_safe(text: str) -> str:
    return _XML_INVALID.sub("", text)


def _add_heading(doc, text: str, level: int):
    return doc.add_heading(_xml_safe(text), level=level)


def _add_body(doc, text: str):
    return doc.add_paragraph(_xml_safe(text))


def _add_bullet(doc, text: str):
    return doc.add_paragraph(_xml_safe(text), style="List Bullet")


def _add_section(doc, section: OutlineSection) -> None:
    if section.title:
        _add_heading(doc, section.title, SECTION_LEVEL)
    if section.description:
        _add_body(doc, section.description)
    for item in section.items or []:
        _add_bullet(doc, item)


def build_docx(
    plan: OutlinePlan,
    product_name: Optional[str] = None,
    business_name: Optional[str] = None,
) -> bytes:
    """Build the kit document for *plan* and return the .docx bytes."""
    doc = Document()

    _add_heading(doc, product_name or settings.DEFAULT_KIT_TITLE, TITLE_LEVEL)
    if business_name:
        _add_body(doc, f"For: {business_name}")
    _add_body(doc, "")

    if plan.summary:
        _add_heading(doc, *SUMMARY_HEADING)
        _add_body(doc, plan.summary)

    for section in plan.sections or []:
        _add_section(doc, section)

    if plan.implementation:
        _add_heading(doc, *IMPLEMENTATION_HEADING)
        _add_body(doc, plan.implementation)

    if plan.notes or plan.disclaimer:
        _add_heading(doc, *NOTES_HEADING)
        if plan.notes:
            _add_body(doc, plan.notes)
        if plan.disclaimer:
            _add_body(doc, plan.disclaimer)

    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def encode_docx(
    plan: OutlinePlan,
    product_name: Optional[str] = None,
    business_name: Optional[str] = None,
) -> str:
    """Same as :func:`build_docx` but base64-encoded for a JSON body."""
    return base64.b64encode(build_docx(plan, product_name, business_name)).decode("ascii")
