import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.providers import ProviderConfig
from config.settings import settings
from interview.types import Credentials, SessionHandle, UserProfile
from services.accounts import hash_password
from storage.migrate import migrate
from storage.profiles import InMemoryProfileStore


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch, tmp_path):
    db_path = str(tmp_path / "profiles.db")
    monkeypatch.setattr(settings, "PROFILE_DB_PATH", db_path, raising=False)
    migrate(db_path)
    yield db_path


class FakeAdapter:
    """Scripted stand-in for a provider adapter.

    Each queued outcome is either a payload to return or an exception to raise.
    When a gate is set, calls block on it before resolving.
    """

    question_score_scale = 10

    def __init__(self, generate: Optional[List[Any]] = None, evaluate: Optional[List[Any]] = None) -> None:
        self.generate_outcomes = list(generate or [])
        self.evaluate_outcomes = list(evaluate or [])
        self.generate_calls: List[Dict[str, Any]] = []
        self.evaluate_calls: List[Dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None

    async def _resolve(self, outcomes: List[Any]) -> Any:
        if self.gate is not None:
            await self.gate.wait()
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def generate_questions(self, topics, count, difficulty, style, resume_text=None):
        self.generate_calls.append(
            {"topics": list(topics), "count": count, "difficulty": difficulty, "style": style, "resume": resume_text}
        )
        return await self._resolve(self.generate_outcomes)

    async def evaluate_answers(self, questions, answers, style):
        self.evaluate_calls.append({"questions": list(questions), "answers": dict(answers), "style": style})
        return await self._resolve(self.evaluate_outcomes)


@pytest.fixture
def store():
    return InMemoryProfileStore()


@pytest.fixture
def provider_config():
    return ProviderConfig(provider="deepseek", api_key="sk-test")


@pytest.fixture
def seeded_user(store, provider_config):
    profile = UserProfile(
        username="alice",
        credentials=Credentials(password_hash=hash_password("pw")),
        ai_config=provider_config,
    )
    store.put("alice", profile)
    return SessionHandle(username="alice")


@pytest.fixture
def fake_adapter():
    return FakeAdapter()
