"""Tests for POST /generateKit."""
import base64
import io
import json

import pytest
from docx import Document
from httpx import AsyncClient

from app.config import settings
from app.main import app
from app.services.kit_generator import KitGenerator, get_kit_generator
from tests.conftest import VALID_REQUEST


def _paragraphs(docx_base64: str):
    doc = Document(io.BytesIO(base64.b64decode(docx_base64)))
    return [(p.style.name, p.text) for p in doc.paragraphs]


# ---------------------------------------------------------------------------
# Method & body validation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_is_method_not_allowed(client: AsyncClient):
    resp = await client.get("/generateKit")
    assert resp.status_code == 405
    assert resp.text == "Method Not Allowed"
    assert resp.headers["allow"] == "POST"


@pytest.mark.asyncio
async def test_malformed_json_is_rejected(client: AsyncClient, fake_openai):
    resp = await client.post(
        "/generateKit",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.text == "Invalid JSON body."
    assert fake_openai.calls == 0


@pytest.mark.asyncio
async def test_empty_body_is_missing_fields(client: AsyncClient, fake_openai):
    resp = await client.post("/generateKit", content=b"")
    assert resp.status_code == 400
    assert resp.text == "Missing required fields."
    assert fake_openai.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field",
    ["productSlug", "productName", "businessName", "industry", "state"],
)
async def test_missing_required_field_skips_llm(client: AsyncClient, fake_openai, field):
    body = dict(VALID_REQUEST)
    del body[field]
    resp = await client.post("/generateKit", json=body)
    assert resp.status_code == 400
    assert "Missing required fields" in resp.text
    assert fake_openai.calls == 0


@pytest.mark.asyncio
async def test_blank_required_field_counts_as_missing(client: AsyncClient, fake_openai):
    resp = await client.post("/generateKit", json={**VALID_REQUEST, "industry": "   "})
    assert resp.status_code == 400
    assert fake_openai.calls == 0


@pytest.mark.asyncio
async def test_non_object_body_is_rejected(client: AsyncClient, fake_openai):
    resp = await client.post("/generateKit", json=["osha-essentials-kit"])
    assert resp.status_code == 400
    assert fake_openai.calls == 0


@pytest.mark.asyncio
async def test_wrongly_typed_required_field_is_named(client: AsyncClient, fake_openai):
    resp = await client.post("/generateKit", json={**VALID_REQUEST, "businessName": {"a": 1}})
    assert resp.status_code == 400
    assert resp.text == "Invalid field: businessName."
    assert fake_openai.calls == 0


@pytest.mark.asyncio
async def test_wrongly_typed_optional_fields_are_ignored(client: AsyncClient, fake_openai):
    body = {**VALID_REQUEST, "employees": ["x"], "risks": {"forklifts": True}}
    resp = await client.post("/generateKit", json=body)
    assert resp.status_code == 200
    user_prompt = fake_openai.last_payload()["messages"][1]["content"]
    assert "['x']" not in user_prompt
    assert "forklifts" not in user_prompt


# ---------------------------------------------------------------------------
# Successful generation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_example_request_produces_outline_and_document(client: AsyncClient, fake_openai):
    fake_openai.set_plan({
        "summary": "S",
        "sections": [{"title": "T", "items": ["a", "b"]}],
        "disclaimer": "D",
    })

    resp = await client.post("/generateKit", json=VALID_REQUEST)
    assert resp.status_code == 200
    data = resp.json()

    assert data["filename"] == "comply-desk-osha-essentials-kit.docx"
    assert data["summary"] == "S"
    assert data["sections"] == [{"title": "T", "items": ["a", "b"]}]
    assert data["disclaimer"] == "D"
    assert "implementation" not in data

    paragraphs = _paragraphs(data["docxBase64"])
    assert paragraphs[0] == ("Title", "OSHA Compliance Essentials Kit")
    headings = [text for style, text in paragraphs if style.startswith("Heading")]
    assert headings == ["Summary", "T", "Notes & disclaimer"]
    bullets = [text for style, text in paragraphs if style == "List Bullet"]
    assert bullets == ["a", "b"]


@pytest.mark.asyncio
async def test_plan_fields_pass_through_unchanged(client: AsyncClient, fake_openai):
    plan = {
        "summary": "Summary text",
        "sections": [
            {"title": "Hazards", "description": "Known hazards", "items": ["Ladders"]},
            {"title": "Training", "items": []},
        ],
        "implementation": "Roll out over 30 days.",
        "notes": "Review yearly.",
        "disclaimer": "Not legal advice. Not guaranteed compliance.",
    }
    fake_openai.set_plan(plan)

    resp = await client.post("/generateKit", json=VALID_REQUEST)
    assert resp.status_code == 200
    data = resp.json()
    docx_base64 = data.pop("docxBase64")
    data.pop("filename")
    assert data == plan
    assert base64.b64decode(docx_base64)[:2] == b"PK"


@pytest.mark.asyncio
async def test_unparseable_model_output_uses_fallback(client: AsyncClient, fake_openai):
    fake_openai.content = "Here is your outline: 1. Safety 2. Training"

    resp = await client.post("/generateKit", json=VALID_REQUEST)
    assert resp.status_code == 200
    data = resp.json()
    assert data["summary"] == "Generated outline"
    assert len(data["sections"]) == 1
    assert data["sections"][0]["title"] == "Raw content"
    assert data["sections"][0]["items"] == ["Here is your outline: 1. Safety 2. Training"]
    assert data["disclaimer"] == "Not legal advice. Not guaranteed compliance."
    assert data["filename"] == "comply-desk-osha-essentials-kit.docx"


@pytest.mark.asyncio
async def test_prompt_carries_request_fields(client: AsyncClient, fake_openai):
    body = {**VALID_REQUEST, "employees": "12", "risks": "forklifts", "mode": "full"}
    resp = await client.post("/generateKit", json=body)
    assert resp.status_code == 200

    payload = fake_openai.last_payload()
    user_prompt = payload["messages"][1]["content"]
    assert "Business name: Acme Co" in user_prompt
    assert "Workers: 12" in user_prompt
    assert "Special risks: forklifts" in user_prompt
    assert "Kit: OSHA Compliance Essentials Kit" in user_prompt


@pytest.mark.asyncio
async def test_optional_fields_may_be_absent(client: AsyncClient, fake_openai):
    resp = await client.post("/generateKit", json=VALID_REQUEST)
    assert resp.status_code == 200
    assert fake_openai.calls == 1


@pytest.mark.asyncio
async def test_misshapen_section_is_dropped_not_the_whole_outline(client: AsyncClient, fake_openai):
    fake_openai.set_plan({
        "summary": "S",
        "sections": [{"description": "no title"}, {"title": "T", "items": ["a"]}],
        "disclaimer": "D",
    })

    resp = await client.post("/generateKit", json=VALID_REQUEST)
    assert resp.status_code == 200
    data = resp.json()
    assert data["summary"] == "S"
    assert data["sections"] == [{"title": "T", "items": ["a"]}]
    headings = [text for style, text in _paragraphs(data["docxBase64"]) if style.startswith("Heading")]
    assert headings == ["Summary", "T", "Notes & disclaimer"]


# ---------------------------------------------------------------------------
# Text Word cannot store
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_control_character_in_raw_output_still_builds_document(client: AsyncClient, fake_openai):
    fake_openai.content = "Outline\x0cpage two"

    resp = await client.post("/generateKit", json=VALID_REQUEST)
    assert resp.status_code == 200
    data = resp.json()
    assert data["sections"][0]["items"] == ["Outline\x0cpage two"]
    bullets = [text for style, text in _paragraphs(data["docxBase64"]) if style == "List Bullet"]
    assert bullets == ["Outlinepage two"]


@pytest.mark.asyncio
async def test_escaped_nul_in_outline_still_builds_document(client: AsyncClient, fake_openai):
    fake_openai.content = '{"summary": "S\\u0000", "disclaimer": "D"}'

    resp = await client.post("/generateKit", json=VALID_REQUEST)
    assert resp.status_code == 200
    data = resp.json()
    assert data["summary"] == "S\x00"
    assert ("Normal", "S") in _paragraphs(data["docxBase64"])


@pytest.mark.asyncio
async def test_control_character_in_business_name_still_builds_document(client: AsyncClient, fake_openai):
    resp = await client.post("/generateKit", json={**VALID_REQUEST, "businessName": "Acme\x01Co"})
    assert resp.status_code == 200
    assert ("Normal", "For: AcmeCo") in _paragraphs(resp.json()["docxBase64"])


# ---------------------------------------------------------------------------
# Upstream failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_missing_api_key_returns_500(client: AsyncClient, fake_openai):
    app.dependency_overrides[get_kit_generator] = lambda: KitGenerator(
        fake_openai.service(api_key="")
    )
    resp = await client.post("/generateKit", json=VALID_REQUEST)
    assert resp.status_code == 500
    assert resp.text == "Error: OPENAI_API_KEY not set in environment variables."
    assert fake_openai.calls == 0


@pytest.mark.asyncio
async def test_upstream_error_returns_500_with_body(client: AsyncClient, fake_openai):
    fake_openai.status_code = 429
    fake_openai.body = json.dumps({"error": {"message": "Rate limit reached"}})

    resp = await client.post("/generateKit", json=VALID_REQUEST)
    assert resp.status_code == 500
    assert resp.text.startswith("Error: OpenAI error:")
    assert "Rate limit reached" in resp.text


# ---------------------------------------------------------------------------
# Catalog enforcement
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_product_allowed_by_default(client: AsyncClient, fake_openai):
    resp = await client.post("/generateKit", json={**VALID_REQUEST, "productSlug": "custom-kit"})
    assert resp.status_code == 200
    assert resp.json()["filename"] == "comply-desk-custom-kit.docx"


@pytest.mark.asyncio
async def test_unknown_product_rejected_when_enforced(client: AsyncClient, fake_openai, monkeypatch):
    monkeypatch.setattr(settings, "ENFORCE_KNOWN_PRODUCTS", True)
    resp = await client.post("/generateKit", json={**VALID_REQUEST, "productSlug": "custom-kit"})
    assert resp.status_code == 400
    assert resp.text == "Unknown product."
    assert fake_openai.calls == 0

    resp = await client.post("/generateKit", json=VALID_REQUEST)
    assert resp.status_code == 200
