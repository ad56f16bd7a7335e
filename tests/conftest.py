import asyncio
import sys
from pathlib import Path

import pytest

# Flat layout: make the project modules importable without installing
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import Settings  # noqa: E402
from relay import ChatRelay  # noqa: E402
from storage import FileMemoryStore  # noqa: E402


def completion(content, usage=None):
    body = {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}
    if usage is not None:
        body["usage"] = usage
    return body


class FakeProvider:
    """Stands in for LLMClient: records prompts, replays scripted outcomes."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.closed = False

    async def chat(self, messages):
        self.calls.append([dict(m) for m in messages])
        await asyncio.sleep(0)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(messages)
        return outcome

    async def close(self):
        self.closed = True


@pytest.fixture
def settings(tmp_path):
    return Settings(api_key="sk-test-key", memory_dir=str(tmp_path / "memories"))


@pytest.fixture
def store(settings):
    return FileMemoryStore(settings.memory_dir, history_limit=settings.history_limit)


@pytest.fixture
def echo_provider():
    return FakeProvider(lambda messages: completion(f"echo: {messages[-1]['content']}"))


@pytest.fixture
def relay(settings, echo_provider, store):
    return ChatRelay(settings, echo_provider, store)
