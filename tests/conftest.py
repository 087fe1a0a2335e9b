"""
Shared fixtures for the kit generator tests.

The OpenAI API is replaced by an ``httpx.MockTransport`` (``FakeOpenAI``)
injected through the ``get_kit_generator`` dependency, so no test touches the
network.  The app is exercised in-process via ``ASGITransport``.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Point settings at the repo catalog and clear the credential *before* any
# app module is imported, so the global settings instance picks them up.
REPO_ROOT = Path(__file__).resolve().parent.parent
os.environ["PRODUCTS_FILE"] = str(REPO_ROOT / "static" / "products.json")
os.environ["OPENAI_API_KEY"] = ""

from app.main import app  # noqa: E402
from app.services.kit_generator import KitGenerator, get_kit_generator  # noqa: E402
from app.services.outline_service import OpenAIOutlineService  # noqa: E402

TEST_API_KEY = "sk-test-key"


class FakeOpenAI:
    """
    Stand-in for the chat-completions endpoint.

    Set ``content`` to control the assistant message, or ``status_code`` /
    ``body`` to return an error response.  Every request is recorded.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.content: Optional[str] = json.dumps({"summary": "S"})
        self.status_code: int = 200
        self.body: Optional[str] = None
        self.exception: Optional[Exception] = None

    def set_plan(self, plan: Dict[str, Any]) -> None:
        self.content = json.dumps(plan)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def last_payload(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exception is not None:
            raise self.exception
        if self.body is not None:
            return httpx.Response(self.status_code, text=self.body)
        return httpx.Response(
            self.status_code,
            json={
                "id": "chatcmpl-test",
                "object": "chat.completion",
                "choices": [
                    {
                        "index": 0,
                        "message": {"role": "assistant", "content": self.content},
                        "finish_reason": "stop",
                    }
                ],
            },
        )

    def service(self, api_key: Optional[str] = TEST_API_KEY) -> OpenAIOutlineService:
        return OpenAIOutlineService(
            api_key=api_key,
            transport=httpx.MockTransport(self.handler),
        )


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest_asyncio.fixture
async def client(fake_openai: FakeOpenAI) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the kit generator
    overridden to talk to ``fake_openai``.
    """
    app.dependency_overrides[get_kit_generator] = lambda: KitGenerator(fake_openai.service())

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

VALID_REQUEST = {
    "productSlug": "osha-essentials-kit",
    "productName": "OSHA Compliance Essentials Kit",
    "businessName": "Acme Co",
    "industry": "Retail",
    "state": "CA",
}
