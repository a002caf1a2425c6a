"""Shared fixtures: a scripted Gemini stand-in and a throwaway SQLite store."""
from __future__ import annotations

import json
from typing import Any, List, Union

import pytest

from ooh_terminal.infrastructure.db.sqlite import SQLiteRepository
from ooh_terminal.infrastructure.llm.gemini_client import InferenceRequest, InferenceResponse
from ooh_terminal.infrastructure.snapshot_store import SnapshotStore
from ooh_terminal.settings.config import Config
from ooh_terminal.workflows.context import SnapshotCell, WorkflowContext

Scripted = Union[str, BaseException, Any]


class FakeGemini:
    """Returns scripted answers in order and records every request.

    A scripted exception is raised instead of answered; dicts and lists are
    JSON-encoded. Once the script runs out the last entry repeats.
    """

    def __init__(self, *answers: Scripted) -> None:
        self.answers: List[Scripted] = list(answers)
        self.requests: List[InferenceRequest] = []

    def push(self, *answers: Scripted) -> None:
        self.answers.extend(answers)

    async def invoke(self, request: InferenceRequest) -> InferenceResponse:
        self.requests.append(request)
        if not self.answers:
            raise AssertionError("FakeGemini has no scripted answer left")
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, BaseException):
            raise answer
        if isinstance(answer, (dict, list)):
            answer = json.dumps(answer)
        return InferenceResponse(text=answer)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def prompt(self, index: int = -1) -> str:
        return self.requests[index].messages[-1]["content"]


class Clock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(database_path=tmp_path / "terminal.db", retry_max=2, retry_initial_delay=0.01)


@pytest.fixture
def repository(config) -> SQLiteRepository:
    return SQLiteRepository(config.database_uri)


@pytest.fixture
def store(repository) -> SnapshotStore:
    return SnapshotStore(repository)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def gemini() -> FakeGemini:
    return FakeGemini()


@pytest.fixture
def context(config, repository, store, gemini) -> WorkflowContext:
    return WorkflowContext(
        config=config,
        repository=repository,
        store=store,
        cell=SnapshotCell(store.load()),
        gemini=gemini,
        sleep=no_sleep,
    )
