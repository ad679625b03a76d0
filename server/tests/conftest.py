"""Shared test fixtures and dummy collaborators."""

from __future__ import annotations

import copy
from typing import Any, Callable

import pytest

from omnia.pipeline import StoreError
from omnia.services.cache import cache


class ReplyMessage:
    """What a chat model returns from ainvoke."""

    def __init__(self, content: str) -> None:
        self.content = content


class DummyLLM:
    """Chat model stand-in; ``reply`` maps the user prompt to a reply or raises."""

    def __init__(self, reply: str | Callable[[str], str]) -> None:
        self._reply = reply
        self.prompts: list[str] = []

    async def ainvoke(self, messages: list) -> ReplyMessage:
        prompt = messages[-1].content
        self.prompts.append(prompt)
        if callable(self._reply):
            return ReplyMessage(self._reply(prompt))
        return ReplyMessage(self._reply)


def _matches(row: dict, filters: dict[str, Any] | None) -> bool:
    for column, expected in (filters or {}).items():
        value = row.get(column)
        op = "eq"
        if isinstance(expected, tuple):
            op, expected = expected
        if op == "eq" and value != expected:
            return False
        if op == "neq" and value == expected:
            return False
        if op == "in" and value not in expected:
            return False
        if op == "is" and value is not expected:
            return False
        if op == "ilike" and expected.strip("*%").lower() not in str(value or "").lower():
            return False
    return True


class FakeRecordStore:
    """In-memory record store with the RecordStore interface."""

    def __init__(self, tables: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, list[dict]] = copy.deepcopy(tables or {})
        self.updates: list[tuple[str, Any, dict]] = []
        self.rpc_calls: list[str] = []
        self.fail_on: set[tuple[str, str]] = set()
        self._next_id = 0

    def _check(self, method: str, collection: str) -> None:
        if (method, collection) in self.fail_on:
            raise StoreError(f"{method} on {collection} failed")

    async def fetch(self, collection, filters=None, columns="*", limit=None, order=None):
        self._check("fetch", collection)
        rows = [dict(r) for r in self.tables.get(collection, []) if _matches(r, filters)]
        return rows[:limit] if limit is not None else rows

    async def fetch_one(self, collection, id, columns="*"):
        rows = await self.fetch(collection, {"id": id}, limit=1)
        if not rows:
            raise StoreError(f"{collection} row {id} not found", not_found=True)
        return rows[0]

    async def insert(self, collection, fields):
        self._check("insert", collection)
        self._next_id += 1
        row = {"id": f"{collection}-{self._next_id}", **fields}
        self.tables.setdefault(collection, []).append(row)
        return dict(row)

    async def update(self, collection, id, fields):
        await self.update_where(collection, {"id": id}, fields)

    async def update_where(self, collection, filters, fields):
        self._check("update", collection)
        self.updates.append((collection, filters, dict(fields)))
        for row in self.tables.get(collection, []):
            if _matches(row, filters):
                row.update(fields)

    async def upsert(self, collection, fields, on_conflict):
        self._check("upsert", collection)
        for row in self.tables.get(collection, []):
            if row.get(on_conflict) == fields.get(on_conflict):
                row.update(fields)
                return dict(row)
        return await self.insert(collection, fields)

    async def rpc(self, function, params=None):
        self._check("rpc", function)
        self.rpc_calls.append(function)
        return {"caches_refreshed": ["fast_dashboard_cache"]}

    def rows(self, collection: str) -> list[dict]:
        return self.tables.get(collection, [])


@pytest.fixture(autouse=True)
def clear_global_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()
