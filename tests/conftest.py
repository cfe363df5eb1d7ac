"""Shared pytest fixtures."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Iterable

import pytest

from branchcraft.gateway import ModelGateway


class FakeCompletions:
    """Returns scripted replies in order and records every request."""

    def __init__(self, replies: Iterable[Any]):
        self._replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        message = SimpleNamespace(role="assistant", content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeClient:
    def __init__(self, replies: Iterable[Any]):
        self.chat = SimpleNamespace(completions=FakeCompletions(replies))

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self.chat.completions.calls


@pytest.fixture
def make_gateway(tmp_path):
    def factory(replies: Iterable[Any]) -> ModelGateway:
        return ModelGateway(FakeClient(replies), log_dir=tmp_path)

    return factory
