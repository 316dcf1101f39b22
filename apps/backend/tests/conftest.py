from __future__ import annotations

import json
import re
from types import SimpleNamespace
from typing import Callable, List, Union

import pytest

from travel_crm.models import Base
from travel_crm.models.db import init_engine
from travel_crm.services.batch_store import BatchStore

Responder = Callable[[str], Union[str, Exception]]

_PART = re.compile(r"part (\d+) of (\d+)")


class FakeCompletions:
    def __init__(self, responder: Responder) -> None:
        self._responder = responder
        self.calls: List[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        result = self._responder(kwargs["messages"][-1]["content"])
        if isinstance(result, Exception):
            raise result
        message = SimpleNamespace(content=result)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    """Stands in for AsyncOpenAI: only chat.completions.create is used."""

    def __init__(self, responder: Responder) -> None:
        self.completions = FakeCompletions(responder)
        self.chat = SimpleNamespace(completions=self.completions)


def chunk_number_of(prompt: str) -> int:
    match = _PART.search(prompt)
    return int(match.group(1)) if match else 1


def leads_json(*leads: dict) -> str:
    return json.dumps(list(leads))


def make_conversation(total_lines: int, line_length: int = 99) -> str:
    """WhatsApp-style text of total_lines lines, each exactly line_length chars."""
    lines = []
    for index in range(total_lines):
        prefix = f"[12/01/2025, 10:{index % 60:02d}] Customer {index}: hotel in Istanbul please "
        lines.append(prefix.ljust(line_length, "x")[:line_length])
    return "\n".join(lines)


@pytest.fixture
def engine():
    engine = init_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(engine) -> BatchStore:
    return BatchStore()


@pytest.fixture
def file_store(tmp_path) -> BatchStore:
    """Store on a SQLite file, for tests that touch it from several threads at once."""
    engine = init_engine(f"sqlite:///{tmp_path / 'batches.db'}")
    Base.metadata.create_all(bind=engine)
    yield BatchStore()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
