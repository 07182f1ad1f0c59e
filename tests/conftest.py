"""
Pytest configuration and fixtures for the quiz server tests.
"""
import sys
import os
import json

# Settings are read at import time; point them at throwaway values first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LLM_API_KEY", "test-key")
os.environ.setdefault("REDIS_URL", "")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Base
from services.user_service import UserService

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)

USERNAMES = ("alice", "bob", "carol", "dave")


def envelope(content: str) -> str:
    """Wrap generated text the way the chat-completion service does."""
    return json.dumps({
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    })


def mcq_entry(n: int, correct: str = "B", solving_time=20) -> dict:
    entry = {
        "text": f"Question number {n}?",
        "options": [f"A) first {n}", f"B) second {n}", f"C) third {n}", f"D) fourth {n}"],
        "correct": correct,
    }
    if solving_time is not None:
        entry["solvingTime"] = solving_time
    return entry


def open_entry(n: int, solving_time=90) -> dict:
    entry = {"text": f"Explain concept {n}.", "answer": f"Reference answer {n}"}
    if solving_time is not None:
        entry["solvingTime"] = solving_time
    return entry


def batch(entries: list) -> str:
    return json.dumps({"questions": {f"question{i}": e for i, e in enumerate(entries, start=1)}})


def mcq_batch(count: int, **kwargs) -> str:
    return batch([mcq_entry(n, **kwargs) for n in range(1, count + 1)])


def open_batch(count: int, **kwargs) -> str:
    return batch([open_entry(n, **kwargs) for n in range(1, count + 1)])


def grading(correct: bool, score, explanation: str = "Looks right.") -> str:
    return json.dumps({"correct": correct, "score": score, "explanation": explanation})


class FakeGateway:
    """Scripted stand-in for LLMGateway: returns queued contents as envelopes."""

    def __init__(self, *contents):
        self.contents = list(contents)
        self.prompts = []

    def push(self, *contents):
        self.contents.extend(contents)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.contents:
            raise AssertionError("FakeGateway called more often than scripted")
        item = self.contents.pop(0)
        if isinstance(item, Exception):
            raise item
        return envelope(item)


@pytest.fixture
async def session_factory(tmp_path):
    """A fresh file-backed SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'quiz.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    yield factory
    await engine.dispose()


@pytest.fixture
async def users(session_factory):
    async with session_factory() as s:
        service = UserService(s)
        created = {}
        for name in USERNAMES:
            user, _ = await service.get_or_create_user(name, full_name=name.title())
            created[name] = user
    return created


@pytest.fixture
async def db(session_factory, users):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()
