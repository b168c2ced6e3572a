import json
from typing import Any, Callable, Dict, List
from unittest.mock import Mock

import httpx
import pytest

from insights.common.llm_client import LLMClient
from insights.common.schemas import InterviewRecord
from insights.common.store_client import SupabaseRestClient

_ENV_VARS = (
    "SUPABASE_INTERVIEWS_URL",
    "SUPABASE_INTERVIEWS_SERVICE_ROLE_KEY",
    "SUPABASE_EXPERTS_URL",
    "SUPABASE_EXPERTS_SERVICE_ROLE_KEY",
    "INSIGHTS_STORE_TIMEOUT",
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "GOOGLE_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_MODEL",
    "INSIGHTS_LLM_PROVIDER",
    "INSIGHTS_VARIANT_POLICY",
    "INSIGHTS_COMPANY_VARIANT_POLICY",
    "INSIGHTS_TOPIC_EXPANSION",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer credentials out of config and LLM tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class RecordingStore:
    """
    httpx.MockTransport handler that records requests and answers from a
    list of canned responses (the last one repeats).
    """

    def __init__(self, responses: List[Any]):
        self.responses = list(responses) or [[]]
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(
            200,
            content=json.dumps(response).encode(),
            headers={"content-type": "application/json"},
        )

    @property
    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.content]

    def client(self) -> SupabaseRestClient:
        return SupabaseRestClient(
            base_url="https://store.test",
            service_role_key="service-key",
            transport=httpx.MockTransport(self),
        )


@pytest.fixture
def make_store() -> Callable[..., RecordingStore]:
    def _make(*responses: Any) -> RecordingStore:
        return RecordingStore(list(responses))
    return _make


@pytest.fixture
def make_record() -> Callable[..., InterviewRecord]:
    counter = {"id": 0}

    def _make(**fields) -> InterviewRecord:
        counter["id"] += 1
        row = {
            "id": counter["id"],
            "created_at": f"2024-05-{counter['id']:02d}T10:00:00+00:00",
            "meeting_id": "m-1",
            "expert_id": 1,
            "expert_name": "Dana Reyes",
            "question_text": "How are you thinking about vendor consolidation this year?",
            "answer_summary": "Consolidating from five vendors to two.",
        }
        row.update(fields)
        return InterviewRecord.from_row(row)
    return _make


@pytest.fixture
def fake_llm() -> Callable[..., Mock]:
    """LLMClient stand-in; pass a reply string or an exception."""
    def _make(reply: Any = "") -> Mock:
        llm = Mock(spec=LLMClient)
        llm.is_available = True
        if isinstance(reply, Exception):
            llm.generate.side_effect = reply
        else:
            llm.generate.return_value = reply
        return llm
    return _make
